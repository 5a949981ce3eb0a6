"""
核心業務邏輯層

這個 package 包含兩個規則引擎與它們的共用工具：
- CanvasEconomy：Chroma 畫布（定價、熱度、冷卻、鎖定）
- RoundLottery：The Fountain 樂透（回合、抽獎、rollover）
- 狀態機：集中管理回合的狀態轉換
- PaymentRouter：把引擎算出的付款義務交給注入的 Transferer
- Event Log：記錄所有重要事件
- Locks：並發控制工具
"""
