#   This file is part of MFW-ChainFlow Assistant.

#   MFW-ChainFlow Assistant is free software: you can redistribute it and/or modify
#   it under the terms of the GNU General Public License as published
#   by the Free Software Foundation, either version 3 of the License,
#   or (at your option) any later version.

#   MFW-ChainFlow Assistant is distributed in the hope that it will be useful,
#   but WITHOUT ANY WARRANTY; without even the implied warranty
#   of MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See
#   the GNU General Public License for more details.

#   You should have received a copy of the GNU General Public License
#   along with MFW-ChainFlow Assistant. If not, see <https://www.gnu.org/licenses/>.

#   Contact: err.overflow@gmail.com
#   Copyright (C) 2024-2025  MFW-ChainFlow Assistant. All rights reserved.

"""
MFW-ChainFlow Assistant
MFW-ChainFlow Assistant 热更新配置
作者:overflow65537
"""


import sys

from qfluentwidgets import (
    qconfig,
    QConfig,
    ConfigItem,
    BoolValidator,
    RangeConfigItem,
    RangeValidator,
)

from hotupdate.common.constants import (
    DEFAULT_LOG_PATH,
    SEARCH_PATHS_GROUP,
    SEARCH_PATHS_KEY,
)


def _detect_concurrency_default() -> int:
    """
    根据平台决定同时下载任务数的默认值：
    - Android 等受限平台限制为 2
    - 其他平台为 0（不限制）
    """
    if sys.platform == "android" or hasattr(sys, "getandroidapilevel"):
        return 2
    return 0


_CONCURRENCY_DEFAULT = _detect_concurrency_default()


class Config(QConfig):
    """Hot update configuration container."""

    # ===== 网络 =====
    proxy = ConfigItem("General", "proxy", 0)
    http_proxy = ConfigItem("General", "http_proxy", "")
    request_timeout = RangeConfigItem(
        "General", "request_timeout", 10, RangeValidator(1, 300)
    )
    log_path = ConfigItem("General", "log_path", DEFAULT_LOG_PATH)

    # ===== 热更新 =====
    # 入口文档地址，文档中的 hotUpdate 字段指向远程清单（可选）
    entry_url = ConfigItem("Update", "entry_url", "")
    # 远程清单地址，留空时使用本地清单中的 remoteManifestUrl
    manifest_url = ConfigItem("Update", "manifest_url", "")
    bundled_manifest = ConfigItem(
        "Update", "bundled_manifest", "resource/project.manifest"
    )
    storage_path = ConfigItem("Update", "storage_path", "hotupdate")

    # 发现新版本后是否无需确认直接更新
    auto_update = ConfigItem("Update", "auto_update", True, BoolValidator())
    verify_checksum = ConfigItem("Update", "verify_checksum", False, BoolValidator())
    max_concurrent_tasks = RangeConfigItem(
        "Update", "max_concurrent_tasks", _CONCURRENCY_DEFAULT, RangeValidator(0, 32)
    )
    auto_retry_limit = RangeConfigItem(
        "Update", "auto_retry_limit", 0, RangeValidator(0, 10)
    )
    retry_backoff = RangeConfigItem(
        "Update", "retry_backoff", 2, RangeValidator(0, 60)
    )

    # ===== 搜索路径 =====
    search_paths = ConfigItem(SEARCH_PATHS_GROUP, SEARCH_PATHS_KEY, [])


cfg = Config()
qconfig.load("config/config.json", cfg)
