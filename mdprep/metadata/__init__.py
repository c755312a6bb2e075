"""
Metadata Layer - 元数据层

负责元数据提取、合并和变量替换。
"""

from mdprep.metadata.models import MetadataItem, MetadataList, normalize_key
from mdprep.metadata.extractor import (
    extract_metadata,
    load_metadata_file,
    parse_command_metadata,
    parse_yaml_content,
)
from mdprep.metadata.merger import merge_metadata
from mdprep.metadata.transforms import (
    Transform,
    TransformError,
    apply_transform_chain,
    parse_transform_chain,
)
from mdprep.metadata.substitute import replace_variables

__all__ = [
    # models
    "MetadataItem",
    "MetadataList",
    "normalize_key",
    # extractor
    "extract_metadata",
    "load_metadata_file",
    "parse_command_metadata",
    "parse_yaml_content",
    # merger
    "merge_metadata",
    # transforms
    "Transform",
    "TransformError",
    "apply_transform_chain",
    "parse_transform_chain",
    # substitute
    "replace_variables",
]
