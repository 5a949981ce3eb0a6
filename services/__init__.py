"""
服務層

這個 package 包含純計算邏輯，不負責狀態轉換：
- CoordinateService：座標 / 顏色驗證與線性化
- PricingService：熱度衰減與價格計算
- LedgerService：金額拆分（不會遺失零頭）
- WinnerService：抽獎 index 計算
"""
