"""本地文件工具：listFiles / readFile / writeFile。

路径按进程当前目录解析（与模型看到的 listFiles 输出一致）；
配置了 workspace root 时，解析后落在根目录之外的路径一律拒绝。
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Set, Tuple, Union

from .definitions import ToolParam, ToolSpec
from .registry import ToolRegistry


DEFAULT_EXTENSIONS: Tuple[str, ...] = (".js", ".html", ".css", ".json", ".md", ".jsx", ".ts", ".tsx")
DEFAULT_EXCLUDED_DIRS: Tuple[str, ...] = ("node_modules", ".git", "dist", "build")
DEFAULT_MAX_DEPTH = 32


@dataclass
class FileToolbox:
    """listFiles/readFile/writeFile 的具体实现。"""

    root: Optional[Path] = None
    allowed_extensions: FrozenSet[str] = frozenset(DEFAULT_EXTENSIONS)
    excluded_dirs: FrozenSet[str] = frozenset(DEFAULT_EXCLUDED_DIRS)
    max_depth: int = DEFAULT_MAX_DEPTH
    base_dir: Path = field(default_factory=Path.cwd)

    def __post_init__(self) -> None:
        if self.root is not None:
            self.root = Path(self.root).expanduser().resolve()
        self.allowed_extensions = frozenset(e.lower() for e in self.allowed_extensions)
        self.excluded_dirs = frozenset(self.excluded_dirs)

    # ---- helpers -------------------------------------------------

    def _resolve(self, raw: str) -> Path:
        text = (raw or "").strip()
        if not text:
            raise ValueError("path is empty")
        candidate = Path(text).expanduser()
        if not candidate.is_absolute():
            candidate = self.base_dir / candidate
        resolved = candidate.resolve()
        if not self._inside_root(resolved):
            raise PermissionError(f"path outside workspace: {raw}")
        return resolved

    def _inside_root(self, path: Path) -> bool:
        if self.root is None:
            return True
        try:
            path.resolve().relative_to(self.root)
        except ValueError:
            return False
        return True

    # ---- tools ---------------------------------------------------

    def list_files(self, directory: str) -> List[str]:
        """递归列出 directory 下扩展名在白名单内的文件。

        返回路径以 directory 原样作为前缀，顺序为目录遍历顺序（不排序）。
        符号链接目录只在其真实目录首次出现时进入，深度超过 max_depth 时停止。
        """

        base = self._resolve(directory)
        if not base.exists():
            raise FileNotFoundError(f"directory not found: {directory}")
        if not base.is_dir():
            raise NotADirectoryError(f"not a directory: {directory}")

        files: List[str] = []
        visited: Set[Tuple[int, int]] = set()

        def scan(real_dir: Path, display_dir: str, depth: int) -> None:
            st = real_dir.stat()
            key = (st.st_dev, st.st_ino)
            if key in visited or depth > self.max_depth:
                return
            visited.add(key)
            with os.scandir(real_dir) as it:
                for entry in it:
                    display = os.path.join(display_dir, entry.name)
                    if entry.name in self.excluded_dirs:
                        continue
                    if entry.is_symlink() and not self._inside_root(Path(entry.path)):
                        continue
                    if entry.is_dir():
                        scan(Path(entry.path), display, depth + 1)
                    elif entry.is_file() and os.path.splitext(entry.name)[1].lower() in self.allowed_extensions:
                        files.append(display)

        scan(base, directory, 0)
        return files

    def read_file(self, file_path: str) -> str:
        path = self._resolve(file_path)
        if not path.exists():
            raise FileNotFoundError(f"file not found: {file_path}")
        if path.is_dir():
            raise IsADirectoryError(f"is a directory: {file_path}")
        # newline="" 保留原始换行符，保证 readFile -> writeFile 不改变文件
        with path.open("r", encoding="utf-8", newline="") as fh:
            return fh.read()

    def write_file(self, file_path: str, content: str) -> Dict[str, Any]:
        path = self._resolve(file_path)
        if path.is_dir():
            raise IsADirectoryError(f"is a directory: {file_path}")
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8", newline="") as fh:
            fh.write(content)
        return {
            "success": True,
            "path": file_path,
            "bytes_written": len(content.encode("utf-8")),
        }

    # ---- registration --------------------------------------------

    def register_into(self, registry: ToolRegistry) -> ToolRegistry:
        registry.register(LIST_FILES_SPEC, lambda args: self.list_files(args["directory"]))
        registry.register(READ_FILE_SPEC, lambda args: self.read_file(args["filePath"]))
        registry.register(WRITE_FILE_SPEC, lambda args: self.write_file(args["filePath"], args["content"]))
        return registry


LIST_FILES_SPEC = ToolSpec(
    name="listFiles",
    description="List all reviewable source files in a directory, recursively",
    params=(
        ToolParam(
            name="directory",
            description="The directory to scan for files",
            required=True,
        ),
    ),
)

READ_FILE_SPEC = ToolSpec(
    name="readFile",
    description="Read the content of a file",
    params=(
        ToolParam(
            name="filePath",
            description="The path of the file to read",
            required=True,
        ),
    ),
)

WRITE_FILE_SPEC = ToolSpec(
    name="writeFile",
    description="Write content to a file, replacing its previous content entirely",
    params=(
        ToolParam(
            name="filePath",
            description="The path of the file to write",
            required=True,
        ),
        ToolParam(
            name="content",
            description="The content to write to the file",
            required=True,
        ),
    ),
)


def default_registry(
    workspace_root: Optional[Union[str, Path]] = None,
    *,
    allowed_extensions: Optional[Iterable[str]] = None,
    excluded_dirs: Optional[Iterable[str]] = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> ToolRegistry:
    toolbox = FileToolbox(
        root=Path(workspace_root) if workspace_root is not None else None,
        allowed_extensions=frozenset(allowed_extensions or DEFAULT_EXTENSIONS),
        excluded_dirs=frozenset(excluded_dirs or DEFAULT_EXCLUDED_DIRS),
        max_depth=max_depth,
    )
    return toolbox.register_into(ToolRegistry())


def registry_from_settings(settings, workspace_root: Optional[Union[str, Path]] = None) -> ToolRegistry:
    root = workspace_root if settings.restrict_to_workspace else None
    return default_registry(
        root,
        allowed_extensions=settings.allowed_extensions,
        excluded_dirs=settings.excluded_dirs,
        max_depth=settings.max_list_depth,
    )
