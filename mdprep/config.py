"""
配置模块 - 处理模式与转换选项

每种处理模式对应一组默认选项；文档元数据可以覆盖这些选项，
其中 mode 键会先把选项重置为对应模式的默认值。
"""

import os
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional


class ProcessingMode(Enum):
    """处理模式"""
    COMMONMARK = "commonmark"
    GFM = "gfm"
    MULTIMARKDOWN = "multimarkdown"
    KRAMDOWN = "kramdown"
    UNIFIED = "unified"


# 模式名别名
MODE_ALIASES: dict[str, ProcessingMode] = {
    "commonmark": ProcessingMode.COMMONMARK,
    "gfm": ProcessingMode.GFM,
    "mmd": ProcessingMode.MULTIMARKDOWN,
    "multimarkdown": ProcessingMode.MULTIMARKDOWN,
    "kramdown": ProcessingMode.KRAMDOWN,
    "unified": ProcessingMode.UNIFIED,
}

# 允许引用解析的模式
CITATION_MODES = (ProcessingMode.MULTIMARKDOWN, ProcessingMode.UNIFIED)

TRUE_VALUES = ("true", "yes", "1")
FALSE_VALUES = ("false", "no", "0")

# 布尔选项：元数据键 -> Options 字段
BOOLEAN_KEYS: dict[str, str] = {
    "transforms": "enable_metadata_transforms",
    "metadata-transforms": "enable_metadata_transforms",
    "metadata_transforms": "enable_metadata_transforms",
    "link-citations": "link_citations",
    "link_citations": "link_citations",
    "show-tooltips": "show_tooltips",
    "show_tooltips": "show_tooltips",
    "suppress-bibliography": "suppress_bibliography",
    "suppress_bibliography": "suppress_bibliography",
    "tables": "enable_tables",
    "hardbreaks": "hardbreaks",
    "hard-breaks": "hardbreaks",
    "unsafe": "unsafe",
}


@dataclass
class Options:
    """
    转换选项

    Attributes:
        mode: 处理模式
        enable_metadata_variables: 是否替换 [%key] 变量
        enable_metadata_transforms: 是否解析 [%key:transform] 转换链
        enable_citations: 是否启用引用解析
        bibliography_files: 参考文献文件列表
        csl_file: CSL 样式文件（仅启用引用，不做样式处理）
        nocite: 不引用也列入参考文献的键（逗号分隔，或 "*"）
        suppress_bibliography: 不输出参考文献块
        link_citations: 引用渲染为指向参考文献的链接
        show_tooltips: 引用带 title 提示
        base_directory: 相对参考文献路径的基准目录
        document_title: 文档标题
        enable_tables: Markdown 表格
        hardbreaks: 换行渲染为 <br>
        unsafe: 允许原始 HTML 通过
    """
    mode: ProcessingMode = ProcessingMode.UNIFIED
    enable_metadata_variables: bool = True
    enable_metadata_transforms: bool = False
    enable_citations: bool = False
    bibliography_files: list[str] = field(default_factory=list)
    csl_file: Optional[str] = None
    nocite: Optional[str] = None
    suppress_bibliography: bool = False
    link_citations: bool = False
    show_tooltips: bool = False
    base_directory: Optional[str] = None
    document_title: Optional[str] = None
    enable_tables: bool = True
    hardbreaks: bool = False
    unsafe: bool = True

    @property
    def citations_active(self) -> bool:
        """引用解析只在 MultiMarkdown 和 unified 模式下生效"""
        return self.enable_citations and self.mode in CITATION_MODES

    @property
    def extracts_metadata(self) -> bool:
        """CommonMark 和 GFM 不识别元数据块"""
        return self.mode in (
            ProcessingMode.MULTIMARKDOWN,
            ProcessingMode.KRAMDOWN,
            ProcessingMode.UNIFIED,
        )


def parse_mode(name: str) -> ProcessingMode:
    """
    解析模式名

    Raises:
        ValueError: 未知的模式名
    """
    mode = MODE_ALIASES.get(name.strip().lower())
    if mode is None:
        valid = ", ".join(sorted(MODE_ALIASES))
        raise ValueError(f"Unknown mode '{name}' (expected one of: {valid})")
    return mode


def options_for_mode(mode: ProcessingMode) -> Options:
    """返回某个模式的默认选项"""
    if mode == ProcessingMode.COMMONMARK:
        return Options(
            mode=mode,
            enable_metadata_variables=False,
            enable_tables=False,
            unsafe=False,
        )
    if mode == ProcessingMode.GFM:
        return Options(
            mode=mode,
            enable_metadata_variables=False,
            hardbreaks=True,
            unsafe=False,
        )
    if mode == ProcessingMode.KRAMDOWN:
        return Options(mode=mode, enable_metadata_variables=False)
    return Options(mode=mode)


def parse_bool(value: str) -> Optional[bool]:
    """true/yes/1 -> True, false/no/0 -> False, 其他 -> None"""
    lowered = value.strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    return None


def split_list(value: str) -> list[str]:
    """按逗号拆分并去掉空项"""
    return [part.strip() for part in value.split(",") if part.strip()]


def apply_metadata_to_options(metadata: Iterable, options: Options) -> Options:
    """
    用文档元数据覆盖选项

    第一遍只处理 mode（重置为该模式默认值，只认第一个），
    第二遍处理其余键。返回新的 Options，不修改传入对象。

    Args:
        metadata: MetadataItem 序列
        options: 当前选项

    Returns:
        新的选项
    """
    items = list(metadata)
    result = replace(options, bibliography_files=list(options.bibliography_files))

    for item in items:
        if item.key.lower() == "mode":
            mode = MODE_ALIASES.get(item.value.strip().lower())
            if mode is not None:
                reset = options_for_mode(mode)
                # 命令行给出的参考文献等输入不随模式重置
                reset.bibliography_files = result.bibliography_files
                reset.base_directory = result.base_directory
                result = reset
            break

    for item in items:
        key = item.key.lower()
        value = item.value

        if key == "mode":
            continue

        if key in BOOLEAN_KEYS:
            flag = parse_bool(value)
            if flag is not None:
                setattr(result, BOOLEAN_KEYS[key], flag)
        elif key == "bibliography":
            for path in split_list(value):
                if path not in result.bibliography_files:
                    result.bibliography_files.append(path)
            result.enable_citations = True
        elif key == "csl":
            result.csl_file = value
            result.enable_citations = True
        elif key == "nocite":
            result.nocite = value
        elif key == "title":
            result.document_title = value
        elif key in ("base-dir", "base_dir"):
            result.base_directory = value

    return result


def default_metadata_file() -> Optional[Path]:
    """
    查找默认元数据文件

    $XDG_CONFIG_HOME/mdprep/config.yml，未设置时为 ~/.config/mdprep/config.yml
    """
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        base = Path(config_home)
    else:
        base = Path.home() / ".config"

    candidate = base / "mdprep" / "config.yml"
    if candidate.is_file():
        return candidate
    return None
