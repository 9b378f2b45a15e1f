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
MFW-ChainFlow Assistant 热更新常量
作者:overflow65537
"""

# 存储目录中缓存的清单文件名
LOCAL_MANIFEST_NAME = "project.manifest"

# 下载中的临时文件后缀
TEMP_SUFFIX = ".tmp"

# 暂存目录后缀，批次全部成功后才移入存储目录
STAGING_SUFFIX = "_temp"

# 搜索路径持久化使用的固定键
SEARCH_PATHS_GROUP = "HotUpdate"
SEARCH_PATHS_KEY = "HotUpdateSearchPaths"

# 入口文档中指向远程清单的字段
ENTRY_MANIFEST_FIELD = "hotUpdate"

# 流式下载的块大小
DOWNLOAD_CHUNK_SIZE = 4096

# 默认日志文件
DEFAULT_LOG_PATH = "debug/hotupdate.log"
