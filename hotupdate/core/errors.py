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
MFW-ChainFlow Assistant 热更新错误类型
作者:overflow65537
"""

from enum import Enum


class FetchErrorKind(Enum):
    """远程文档获取失败的类别"""

    UNREACHABLE = "unreachable"
    BAD_STATUS = "bad_status"
    PARSE_ERROR = "parse_error"


class SyncError(Exception):
    """热更新同步过程中的错误基类"""


class InvalidStateError(SyncError, RuntimeError):
    """会话在当前状态下不允许执行该操作"""


class TransportError(SyncError):
    """传输层错误，状态码仅在 BAD_STATUS 时存在"""

    def __init__(self, kind: FetchErrorKind, message: str, status: int | None = None):
        super().__init__(message)
        self.kind = kind
        self.status = status


class ManifestMissing(SyncError):
    """本地清单不存在或无法解析"""


class ManifestFetchFailed(SyncError):
    def __init__(self, kind: FetchErrorKind, message: str):
        super().__init__(f"{kind.value}: {message}")
        self.kind = kind


class AssetError(SyncError):
    """单个资源处理失败，会进入失败列表"""

    def __init__(self, path: str, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path


class AssetVerifyRejected(AssetError):
    pass


class AssetTransportFailed(AssetError):
    pass


class AssetDecompressFailed(AssetError):
    pass


class PersistFailed(SyncError):
    """搜索路径或本地清单写入持久化存储失败"""
