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
MFW-ChainFlow Assistant 压缩包解压单元
作者:overflow65537
"""

import tarfile
import zipfile
from pathlib import Path, PurePosixPath
from typing import Literal

from hotupdate.utils.logger import logger


def _archive_type(archive_path: Path) -> Literal["zip", "tar"]:
    normalized_name = archive_path.name.lower()
    if normalized_name.endswith(".tmp"):
        normalized_name = normalized_name[: -len(".tmp")]
    if normalized_name.endswith((".tar.gz", ".tgz", ".tar")):
        return "tar"
    if not normalized_name.endswith(".zip"):
        logger.warning("未知压缩格式: %s，默认按照 zip 处理", archive_path.name)
    return "zip"


def _is_safe_member(member_name: str) -> bool:
    member_path = PurePosixPath(member_name)
    return not member_path.is_absolute() and ".." not in member_path.parts


def extract_archive(archive_path: Path | str, extract_to: Path | str) -> list[str] | None:
    """解压资源包到目标目录。

    Args:
        archive_path: 压缩包路径，支持 zip 与 tar(.gz)。
        extract_to: 解压目标目录。

    Returns:
        解压出的成员名列表；压缩包损坏或包含越界路径时返回 None。
    """
    target_path = Path(archive_path)
    extract_to_path = Path(extract_to)
    extract_to_path.mkdir(parents=True, exist_ok=True)

    try:
        if _archive_type(target_path) == "zip":
            with zipfile.ZipFile(target_path, "r", metadata_encoding="utf-8") as archive:
                members = archive.namelist()
                if not all(_is_safe_member(name) for name in members):
                    logger.error("压缩包包含越界路径，拒绝解压: %s", target_path)
                    return None
                archive.extractall(extract_to_path)
        else:
            with tarfile.open(target_path, "r:*") as archive:
                tar_members = archive.getmembers()
                members = [member.name for member in tar_members]
                if not all(_is_safe_member(name) for name in members):
                    logger.error("压缩包包含越界路径，拒绝解压: %s", target_path)
                    return None
                archive.extractall(extract_to_path, members=tar_members)
        return members
    except (zipfile.BadZipFile, tarfile.TarError, OSError) as e:
        logger.exception("解压文件时出错 %s", e)
        return None
