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
MFW-ChainFlow Assistant 搜索路径持久化单元
作者:overflow65537
"""

from typing import Iterable, TYPE_CHECKING

from hotupdate.core.errors import PersistFailed
from hotupdate.utils.logger import logger

if TYPE_CHECKING:
    from hotupdate.common.config import Config


class SearchPathStorage:
    """搜索路径列表的持久化存储接口，整个列表保存在一个固定键下"""

    def read(self) -> list[str]:
        raise NotImplementedError

    def write(self, paths: list[str]) -> None:
        raise NotImplementedError


class ConfigSearchPathStorage(SearchPathStorage):
    """通过 QConfig 写入配置文件的搜索路径存储"""

    def __init__(self, config: "Config | None" = None):
        if config is None:
            from hotupdate.common.config import cfg

            config = cfg
        self._config = config

    def read(self) -> list[str]:
        value = self._config.get(self._config.search_paths)
        if not isinstance(value, list):
            logger.warning("配置中的搜索路径格式无效，按空列表处理: %r", value)
            return []
        return [str(path) for path in value]

    def write(self, paths: list[str]) -> None:
        item = self._config.search_paths
        previous = item.value
        self._config.set(item, list(paths), save=False)
        try:
            self._config.save()
        except (OSError, TypeError, ValueError):
            # 写盘失败时回滚内存中的值，避免与磁盘内容不一致
            item.value = previous
            raise


class SearchPathPersister:
    def __init__(self, storage: SearchPathStorage):
        self._storage = storage

    def current(self) -> list[str]:
        return self._storage.read()

    def commit(self, new_roots: Iterable[str]) -> list[str]:
        """
        将新的内容根目录插入到现有搜索路径之前并持久化。

        不做去重，调用后进程需要重启（或重新初始化资源解析）才能使用新顺序。

        Returns:
            list[str]: 新的搜索路径列表，可直接交给资源加载器使用。

        Raises:
            PersistFailed: 写入持久化存储失败。
        """
        paths = [str(root) for root in new_roots] + self.current()
        try:
            self._storage.write(paths)
        except (OSError, TypeError, ValueError) as e:
            logger.error("搜索路径保存失败: %s", e)
            raise PersistFailed(f"failed to persist search paths: {e}") from e
        logger.info("搜索路径已更新: %s", paths)
        return paths
