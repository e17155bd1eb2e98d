"""共通モジュール: 設定、例外、ログ、データモデル"""
