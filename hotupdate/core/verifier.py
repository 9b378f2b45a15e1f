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
MFW-ChainFlow Assistant 资源校验单元
作者:overflow65537
"""

import hashlib

from hotupdate.core.manifest import AssetEntry
from hotupdate.utils.logger import logger


class AssetVerifier:
    """默认校验策略：下载完成即接受"""

    def accept(self, entry: AssetEntry, data: bytes) -> bool:
        return True


class ChecksumVerifier(AssetVerifier):
    """严格校验：已知大小必须一致，md5 必须与清单一致"""

    def accept(self, entry: AssetEntry, data: bytes) -> bool:
        if entry.size and len(data) != entry.size:
            logger.warning(
                "资源大小不符 %s: %d != %d", entry.path, len(data), entry.size
            )
            return False
        if not entry.checksum:
            return True
        digest = hashlib.md5(data).hexdigest()
        if digest != entry.checksum.lower():
            logger.warning("资源校验失败 %s: %s != %s", entry.path, digest, entry.checksum)
            return False
        return True


def create_verifier(strict: bool) -> AssetVerifier:
    return ChecksumVerifier() if strict else AssetVerifier()
