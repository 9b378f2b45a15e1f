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
MFW-ChainFlow Assistant 清单单元
作者:overflow65537
"""

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import jsonc

from hotupdate.common.constants import ENTRY_MANIFEST_FIELD, LOCAL_MANIFEST_NAME
from hotupdate.core.errors import (
    FetchErrorKind,
    ManifestFetchFailed,
    TransportError,
)
from hotupdate.utils.logger import logger
from hotupdate.utils.transport import Transport


# ==================== 数据模型 ====================
@dataclass(frozen=True)
class AssetEntry:
    """清单中的单个资源"""

    path: str
    checksum: str = ""
    size: int = 0
    compressed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"md5": self.checksum, "size": self.size, "compressed": self.compressed}

    @classmethod
    def from_dict(cls, path: str, data: Mapping[str, Any]) -> "AssetEntry":
        """字段类型错误时抛出 ValueError"""
        md5 = data.get("md5") or ""
        if not isinstance(md5, str):
            raise ValueError(f"invalid md5 for asset {path}: {md5!r}")

        size = data.get("size") or 0
        if isinstance(size, bool) or not isinstance(size, (int, float, str)):
            raise ValueError(f"invalid size for asset {path}: {size!r}")
        try:
            size = int(size)
        except (ValueError, OverflowError) as e:
            raise ValueError(f"invalid size for asset {path}: {size!r}") from e
        if size < 0:
            raise ValueError(f"negative size for asset {path}: {size}")

        return cls(
            path=path,
            checksum=md5.lower(),
            size=size,
            compressed=bool(data.get("compressed", False)),
        )


@dataclass(frozen=True)
class Manifest:
    """版本清单，加载后不可修改"""

    version: str
    assets: Mapping[str, AssetEntry] = field(default_factory=dict)
    package_url: str = ""
    remote_manifest_url: str = ""
    remote_version_url: str = ""
    search_paths: tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "assets", MappingProxyType(dict(self.assets)))
        object.__setattr__(self, "search_paths", tuple(self.search_paths))

    def asset_url(self, entry: AssetEntry) -> str:
        base = self.package_url
        if base and not base.endswith("/"):
            base += "/"
        return base + entry.path

    def diff(self, local: "Manifest | None") -> list[AssetEntry]:
        """返回本清单中相对 local 新增或校验值不同的资源，保持清单顺序"""
        if local is None:
            return list(self.assets.values())
        changed = []
        for path, entry in self.assets.items():
            old = local.assets.get(path)
            if old is None or old.checksum != entry.checksum:
                changed.append(entry)
        return changed

    def removed_since(self, local: "Manifest | None") -> list[str]:
        if local is None:
            return []
        return [path for path in local.assets if path not in self.assets]

    def to_dict(self) -> dict[str, Any]:
        return {
            "packageUrl": self.package_url,
            "remoteManifestUrl": self.remote_manifest_url,
            "remoteVersionUrl": self.remote_version_url,
            "version": self.version,
            "assets": {path: entry.to_dict() for path, entry in self.assets.items()},
            "searchPaths": list(self.search_paths),
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Manifest":
        """从清单文档创建实例，字段缺失或类型错误时抛出 ValueError"""
        if not isinstance(data, dict):
            raise ValueError("manifest root must be an object")
        version = data.get("version")
        if not isinstance(version, str) or not version:
            raise ValueError("manifest has no version")
        raw_assets = data.get("assets", {})
        if not isinstance(raw_assets, dict):
            raise ValueError("manifest assets must be an object")
        assets = {}
        for path, value in raw_assets.items():
            if not isinstance(value, dict):
                raise ValueError(f"invalid asset entry: {path}")
            assets[path] = AssetEntry.from_dict(path, value)
        search_paths = data.get("searchPaths", [])
        if not isinstance(search_paths, list):
            raise ValueError("manifest searchPaths must be a list")
        return cls(
            version=version,
            assets=assets,
            package_url=str(data.get("packageUrl", "")),
            remote_manifest_url=str(data.get("remoteManifestUrl", "")),
            remote_version_url=str(data.get("remoteVersionUrl", "")),
            search_paths=tuple(str(p) for p in search_paths),
        )

    @classmethod
    def parse(cls, text: str) -> "Manifest":
        return cls.from_dict(jsonc.loads(text))


def versions_match(local: Manifest, remote_version: str) -> bool:
    """版本号按不透明字符串处理，只比较是否相等"""
    return local.version == remote_version


# ==================== 清单存取 ====================
class ManifestStore:
    def __init__(
        self,
        transport: Transport,
        bundled_manifest: Path | str,
        storage_path: Path | str,
    ):
        """
        Args:
            transport: 获取远程文档使用的传输层
            bundled_manifest: 随程序发布的清单文件
            storage_path: 可写存储目录，更新后的资源与清单都放在这里
        """
        self.transport = transport
        self.bundled_manifest = Path(bundled_manifest)
        self.storage_path = Path(storage_path)

    @property
    def cached_manifest(self) -> Path:
        return self.storage_path / LOCAL_MANIFEST_NAME

    def _read_manifest(self, path: Path) -> Manifest | None:
        if not path.is_file():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return Manifest.parse(f.read())
        except (OSError, TypeError, ValueError) as e:
            logger.warning("本地清单无法解析 %s: %s", path, e)
            return None

    def load_local(self) -> Manifest | None:
        """读取本地清单，存储目录中的缓存优先于随包清单，不存在或损坏时返回 None"""
        for candidate in (self.cached_manifest, self.bundled_manifest):
            manifest = self._read_manifest(candidate)
            if manifest is not None:
                logger.info("已加载本地清单 %s (version=%s)", candidate, manifest.version)
                return manifest
        logger.warning("未找到可用的本地清单")
        return None

    def save_local(self, manifest: Manifest) -> Path:
        self.storage_path.mkdir(parents=True, exist_ok=True)
        temp_path = self.cached_manifest.with_name(LOCAL_MANIFEST_NAME + ".tmp")
        with open(temp_path, "w", encoding="utf-8") as f:
            jsonc.dump(manifest.to_dict(), f, indent=2, ensure_ascii=False)
        temp_path.replace(self.cached_manifest)
        logger.info("已写入本地清单: %s", self.cached_manifest)
        return self.cached_manifest

    async def _fetch_document(self, url: str, label: str) -> Any:
        try:
            text = await self.transport.fetch_text(url)
        except TransportError as e:
            logger.error("%s获取失败: %s", label, e)
            raise ManifestFetchFailed(e.kind, str(e)) from e
        try:
            return jsonc.loads(text)
        except ValueError as e:
            logger.error("%s解析失败: %s", label, e)
            raise ManifestFetchFailed(FetchErrorKind.PARSE_ERROR, str(e)) from e

    async def fetch_remote(self, url: str) -> Manifest:
        data = await self._fetch_document(url, "远程清单")
        try:
            manifest = Manifest.from_dict(data)
        except (TypeError, ValueError) as e:
            logger.error("远程清单内容无效: %s", e)
            raise ManifestFetchFailed(FetchErrorKind.PARSE_ERROR, str(e)) from e
        logger.info("远程清单版本: %s，资源数: %d", manifest.version, len(manifest.assets))
        return manifest

    async def fetch_remote_version(self, url: str) -> str:
        """获取只含版本号的轻量文档"""
        data = await self._fetch_document(url, "远程版本文件")
        version = data.get("version") if isinstance(data, dict) else None
        if not isinstance(version, str) or not version:
            raise ManifestFetchFailed(FetchErrorKind.PARSE_ERROR, "version file has no version")
        return version

    async def fetch_entry_url(self, url: str) -> str:
        """获取入口文档，返回其中 hotUpdate 字段指向的远程清单地址"""
        data = await self._fetch_document(url, "入口文档")
        manifest_url = data.get(ENTRY_MANIFEST_FIELD) if isinstance(data, dict) else None
        if not isinstance(manifest_url, str) or not manifest_url:
            raise ManifestFetchFailed(
                FetchErrorKind.PARSE_ERROR, f"entry document has no {ENTRY_MANIFEST_FIELD}"
            )
        return manifest_url
