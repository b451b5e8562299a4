"""YAML / 二进制文件统一读写工具

仓库配置 (repositories.yaml)、仓库索引 (index.yaml) 和网关配置都走这里，
统一 encoding="utf-8"、空值保护、原子写入。
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

# 仓库索引可能很大（stable 仓库的 index.yaml 约数 MB），留足余量
MAX_YAML_SIZE = 64 * 1024 * 1024


def atomic_write_bytes(path: Path, payload: bytes) -> None:
    """原子写入：同目录临时文件 + os.replace，读者永远看不到半个文件

    异常:
        OSError: 写入或 rename 失败（临时文件已清理）
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(payload)
        os.replace(tmp, str(path))
    except Exception:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


def parse_yaml(text: str | bytes, *, source: str = "<memory>") -> dict[str, Any]:
    """解析 YAML 文本，非字典内容返回空字典"""
    result = yaml.safe_load(text)
    if result is None:
        return {}
    if not isinstance(result, dict):
        logger.warning(
            "%s 内容不是字典类型 (实际类型: %s)，按空处理",
            source, type(result).__name__,
        )
        return {}
    return result


def load_yaml(path: str | Path) -> dict[str, Any]:
    """安全读取 YAML 文件

    返回:
        dict: 文件不存在、为空或不是字典时返回空字典

    异常:
        ValueError: 文件超过 MAX_YAML_SIZE
        yaml.YAMLError: YAML 格式错误
    """
    p = Path(path)
    if not p.exists():
        return {}

    file_size = p.stat().st_size
    if file_size > MAX_YAML_SIZE:
        raise ValueError(
            f"YAML 文件过大: {p} ({file_size} 字节), "
            f"超过限制 {MAX_YAML_SIZE} 字节"
        )

    try:
        with open(p, encoding="utf-8") as f:
            return parse_yaml(f.read(), source=str(p))
    except yaml.YAMLError as e:
        logger.error("解析 YAML 文件失败: %s, 错误: %s", p, e)
        raise


def save_yaml(path: str | Path, data: Any) -> None:
    """原子写入 YAML 文件（保持键顺序，允许 Unicode）"""
    content = yaml.safe_dump(
        data, default_flow_style=False,
        allow_unicode=True, sort_keys=False,
    )
    atomic_write_bytes(Path(path), content.encode("utf-8"))
