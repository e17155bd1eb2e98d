"""設定管理モジュール.

環境変数とTOMLファイルから階層的に設定を読み込み、
パイプライン全体で使用する既定値を一元管理する。

優先順位（高い順）:
1. 環境変数（SERIES_FLOW_ プレフィックス）
2. .env.local
3. .env
4. config.toml
5. デフォルト値
"""

from pathlib import Path
from typing import Optional, Dict, Any
import os
import tomllib
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv


ENV_PREFIX = "SERIES_FLOW_"


class PipelineConfig(BaseSettings):
    """パイプライン設定クラス - 環境変数とTOMLファイルから読み込み.

    Attributes:
        app_name: アプリケーション名
        app_version: アプリケーションバージョン
        debug: デバッグモード
        log_level: ログレベル
        log_format: ログ出力形式（json / text）

        default_speed_ms: スケジューラの既定ティック間隔（ミリ秒）
        default_window_size: 移動平均の既定ウィンドウサイズ
        csv_separator: CSV読み込み時の区切り文字
        measure_memory: 一括変換時にメモリ使用量を計測するか
    """

    app_name: str = Field(default="series_flow", description="アプリケーション名")
    app_version: str = Field(default="0.1.0", description="アプリケーションバージョン")
    debug: bool = Field(default=False, description="デバッグモード")
    log_level: str = Field(default="INFO", description="ログレベル")
    log_format: str = Field(default="json", description="ログ出力形式")

    default_speed_ms: float = Field(default=1000.0, gt=0, description="既定ティック間隔（ミリ秒）")
    default_window_size: int = Field(default=10, ge=1, description="既定ウィンドウサイズ")
    csv_separator: str = Field(default=",", min_length=1, max_length=1, description="CSV区切り文字")
    measure_memory: bool = Field(default=False, description="メモリ計測の有効化")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_prefix=ENV_PREFIX,
        validate_assignment=True,
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """ログレベルの検証."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """ログ出力形式の検証."""
        v_lower = v.lower()
        if v_lower not in ("json", "text"):
            raise ValueError(f"Invalid log format: {v}. Must be 'json' or 'text'")
        return v_lower


class ConfigManager:
    """設定管理クラス - シングルトンパターン.

    アプリケーション全体で一つのインスタンスのみを保持し、
    設定の一元管理を実現する。
    """

    _instance: Optional['ConfigManager'] = None
    _config: Optional[PipelineConfig] = None
    _toml_data: Optional[Dict[str, Any]] = None

    def __new__(cls) -> 'ConfigManager':
        """シングルトンインスタンスの生成."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def load_config(self,
                   env_file: Optional[Path] = None,
                   toml_file: Optional[Path] = None) -> PipelineConfig:
        """設定を読み込み.

        TOMLファイルから設定を読み込み、環境変数で上書きする。

        Args:
            env_file: 環境変数ファイルのパス
            toml_file: TOMLファイルのパス

        Returns:
            読み込まれた設定

        Raises:
            tomllib.TOMLDecodeError: TOMLファイルの形式が不正な場合
        """
        if toml_file and toml_file.exists():
            with open(toml_file, "rb") as f:
                self._toml_data = tomllib.load(f)
        else:
            self._toml_data = {}

        # python-dotenvで環境変数を設定（指定ファイル > .env.local > .env）
        local_env = Path(".env.local")
        default_env = Path(".env")
        if env_file and env_file.exists():
            load_dotenv(env_file, override=True)
        elif local_env.exists():
            load_dotenv(local_env, override=True)
        elif default_env.exists():
            load_dotenv(default_env, override=True)

        self._config = PipelineConfig()

        # 環境変数で設定されていない項目のみTOMLから補完
        for key, value in self._toml_data.items():
            env_key = f"{ENV_PREFIX}{key.upper()}"
            if env_key not in os.environ and key in PipelineConfig.model_fields:
                setattr(self._config, key, value)

        return self._config

    def get_config(self) -> PipelineConfig:
        """現在の設定を取得.

        未読み込みの場合は既定の読み込み手順で初期化する。

        Returns:
            現在の設定
        """
        if self._config is None:
            return self.load_config()
        return self._config

    def update_config(self, **kwargs) -> PipelineConfig:
        """設定を部分的に更新.

        Args:
            **kwargs: 更新する設定項目

        Returns:
            更新された設定
        """
        current_data = self.get_config().model_dump()
        current_data.update(kwargs)
        self._config = PipelineConfig(**current_data)
        return self._config

    @classmethod
    def reset_instance(cls) -> None:
        """シングルトンインスタンスをリセット（主にテスト用）."""
        cls._instance = None
        cls._config = None
        cls._toml_data = None


def get_config() -> PipelineConfig:
    """設定を取得するヘルパー関数."""
    return ConfigManager().get_config()


def load_config(env_file: Optional[Path] = None,
                toml_file: Optional[Path] = None) -> PipelineConfig:
    """設定を読み込むヘルパー関数.

    Args:
        env_file: 環境変数ファイルのパス
        toml_file: TOMLファイルのパス

    Returns:
        読み込まれた設定
    """
    return ConfigManager().load_config(env_file=env_file, toml_file=toml_file)
