"""
ローカル動画フィード
縦スワイプで再生するショート動画スタイルのビューア
"""

__version__ = '0.3.0'
