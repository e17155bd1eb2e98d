"""
Series Flow: イベント駆動の時系列データパイプライン

このパッケージは以下のモジュールを提供します:
- common: 設定・ログ・例外・共通モデル
- pipeline: イベント駆動コンテナ、変換処理、スケジューラ、実行エンジン
- providers: 配列・CSV・移動平均コンテナ
- processors: 取引戦略シミュレーターと補助関数
"""

__version__ = "0.1.0"
__author__ = "Series Flow Team"
