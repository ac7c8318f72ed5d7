"""
Python Call Graph
Static call hierarchy of a Python project, built with the `ast` module.

Serves as the call hierarchy provider when no language server is at hand:
definitions become call hierarchy items, and every call expression in a
definition's body is resolved to a project definition where possible.
Calls into builtins and 3rd party code are not resolved.
"""

import ast
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

from core.hierarchy_types import CallHierarchyItem, OutgoingCall, Position, Range, SymbolKind

logger = logging.getLogger(__name__)


# ============================================================
# DATA STRUCTURES
# ============================================================

@dataclass
class CallReference:
    """A call expression: the called name, where it is, and what it is called on."""
    name: str
    name_range: Range
    receiver: Optional[str] = None
    is_attribute: bool = False


@dataclass
class Definition:
    """A function, method or property with the calls made in its body."""
    item: CallHierarchyItem
    module: "ModuleInfo"
    class_name: Optional[str] = None
    calls: List[CallReference] = field(default_factory=list)
    local_types: Dict[str, str] = field(default_factory=dict)


@dataclass
class ClassInfo:
    name: str
    item: CallHierarchyItem
    bases: List[str] = field(default_factory=list)
    methods: Dict[str, Definition] = field(default_factory=dict)
    attribute_types: Dict[str, str] = field(default_factory=dict)


@dataclass
class ModuleInfo:
    path: str
    module_name: str
    is_package: bool = False
    imports: Dict[str, str] = field(default_factory=dict)
    functions: Dict[str, Definition] = field(default_factory=dict)
    classes: Dict[str, ClassInfo] = field(default_factory=dict)
    definitions: List[Definition] = field(default_factory=list)


PROPERTY_DECORATORS = {"property", "cached_property", "functools.cached_property"}


def _char_offset(line_text: str, byte_offset: int) -> int:
    """ast reports UTF-8 byte offsets, positions count characters."""
    return len(line_text.encode("utf-8")[:byte_offset].decode("utf-8", errors="ignore"))


def _dotted_name(node) -> Optional[str]:
    """`a.b.c` for Name/Attribute chains, None for anything else."""
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        value = _dotted_name(node.value)
        return f"{value}.{node.attr}" if value else None
    return None


def _constructed_class(node) -> Optional[str]:
    """Class name for `Cls(...)` or `module.Cls(...)` expressions."""
    if isinstance(node, ast.Await):
        node = node.value
    if isinstance(node, ast.Call):
        name = _dotted_name(node.func)
        if name:
            last = name.split(".")[-1]
            if last[:1].isupper():
                return name
    return None


def _annotation_class(node) -> Optional[str]:
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        return node.value.strip("'\"") or None
    if isinstance(node, ast.Subscript):
        # Optional[Cls] and friends
        return _annotation_class(node.slice)
    return _dotted_name(node)


# ============================================================
# AST VISITOR - Collects definitions and calls of one module
# ============================================================

class DefinitionCollector(ast.NodeVisitor):
    """AST visitor recording definitions, imports, attribute types and calls."""

    def __init__(self, module: ModuleInfo, lines: List[str], self_tokens: Iterable[str] = ("self", "cls")):
        self.module = module
        self.lines = lines
        self.self_tokens = set(self_tokens)
        self.class_stack: List[ClassInfo] = []
        self.definition_stack: List[Definition] = []
        # "class" or "function", innermost last
        self._scope: List[str] = []

    # --- positions ---

    def _line(self, lineno: int) -> str:
        index = lineno - 1
        return self.lines[index] if 0 <= index < len(self.lines) else ""

    def _node_range(self, node) -> Range:
        start_line = self._line(node.lineno)
        end_line = self._line(node.end_lineno)
        return Range(
            Position(node.lineno - 1, _char_offset(start_line, node.col_offset)),
            Position(node.end_lineno - 1, _char_offset(end_line, node.end_col_offset)),
        )

    def _name_range(self, node, keyword: str) -> Range:
        """Range of the name token following `def`/`class` on the definition line."""
        line_text = self._line(node.lineno)
        start = _char_offset(line_text, node.col_offset)
        match = re.compile(rf"{keyword}\s+({re.escape(node.name)})\b").search(line_text, start)
        if match:
            return Range(Position(node.lineno - 1, match.start(1)), Position(node.lineno - 1, match.end(1)))
        return Range(Position(node.lineno - 1, start), Position(node.lineno - 1, start + len(node.name)))

    # --- imports ---

    def visit_Import(self, node):
        for alias in node.names:
            if alias.asname:
                self.module.imports[alias.asname] = alias.name
            else:
                # `import a.b` binds `a`
                self.module.imports[alias.name.split(".")[0]] = alias.name.split(".")[0]
        self.generic_visit(node)

    def visit_ImportFrom(self, node):
        base = self._resolve_import_base(node)
        for alias in node.names:
            if alias.name == "*":
                continue
            name = alias.asname or alias.name
            self.module.imports[name] = f"{base}.{alias.name}" if base else alias.name
        self.generic_visit(node)

    def _resolve_import_base(self, node: ast.ImportFrom) -> str:
        if not node.level:
            return node.module or ""
        package = self.module.module_name.split(".")
        if not self.module.is_package:
            package = package[:-1]
        if node.level > 1:
            package = package[:len(package) - (node.level - 1)]
        if node.module:
            package = package + node.module.split(".")
        return ".".join(p for p in package if p)

    # --- definitions ---

    def visit_ClassDef(self, node):
        item = CallHierarchyItem(
            name=node.name,
            kind=SymbolKind.CLASS,
            uri=self.module.path,
            range=self._node_range(node),
            selection_range=self._name_range(node, "class"),
            detail=".".join([c.name for c in self.class_stack] + [node.name]),
        )
        class_info = ClassInfo(
            name=node.name,
            item=item,
            bases=[b for b in (_dotted_name(base) for base in node.bases) if b],
        )
        if not self.definition_stack:
            self.module.classes[node.name] = class_info

        self.class_stack.append(class_info)
        self._scope.append("class")
        self.generic_visit(node)
        self._scope.pop()
        self.class_stack.pop()

    def visit_FunctionDef(self, node):
        in_class = bool(self._scope) and self._scope[-1] == "class"
        decorators = {_dotted_name(d) for d in node.decorator_list}

        if in_class and decorators & PROPERTY_DECORATORS:
            kind = SymbolKind.PROPERTY
        elif in_class:
            kind = SymbolKind.METHOD
        else:
            kind = SymbolKind.FUNCTION

        if in_class:
            detail = f"{self.class_stack[-1].item.detail}.{node.name}"
        elif self.definition_stack:
            detail = f"{self.definition_stack[-1].item.detail}.{node.name}"
        else:
            detail = node.name

        item = CallHierarchyItem(
            name=node.name,
            kind=kind,
            uri=self.module.path,
            range=self._node_range(node),
            selection_range=self._name_range(node, "def"),
            detail=detail,
        )
        definition = Definition(
            item=item,
            module=self.module,
            class_name=self.class_stack[-1].name if in_class else None,
        )
        self.module.definitions.append(definition)

        if in_class:
            self.class_stack[-1].methods.setdefault(node.name, definition)
        elif not self.definition_stack:
            self.module.functions[node.name] = definition

        # Decorators and defaults are evaluated by the enclosing scope
        for decorator in node.decorator_list:
            self.visit(decorator)
        self.visit(node.args)

        self.definition_stack.append(definition)
        self._scope.append("function")
        for statement in node.body:
            self.visit(statement)
        self._scope.pop()
        self.definition_stack.pop()

    visit_AsyncFunctionDef = visit_FunctionDef

    # --- types ---

    def _record_type(self, target, type_name: Optional[str]):
        if not type_name or not self.definition_stack:
            return
        definition = self.definition_stack[-1]

        is_instance_attribute = (
            isinstance(target, ast.Attribute)
            and isinstance(target.value, ast.Name)
            and target.value.id in self.self_tokens
        )
        if is_instance_attribute:
            if self.class_stack and definition.class_name == self.class_stack[-1].name:
                self.class_stack[-1].attribute_types[target.attr] = type_name
        elif isinstance(target, ast.Name):
            definition.local_types[target.id] = type_name

    def visit_Assign(self, node):
        type_name = _constructed_class(node.value)
        for target in node.targets:
            self._record_type(target, type_name)
        self.generic_visit(node)

    def visit_AnnAssign(self, node):
        self._record_type(node.target, _annotation_class(node.annotation))
        self.generic_visit(node)

    # --- calls ---

    def visit_Call(self, node):
        if self.definition_stack:
            reference = self._call_reference(node.func)
            if reference:
                self.definition_stack[-1].calls.append(reference)
        self.generic_visit(node)

    def _call_reference(self, func) -> Optional[CallReference]:
        if isinstance(func, ast.Name):
            return CallReference(name=func.id, name_range=self._node_range(func))

        if isinstance(func, ast.Attribute):
            end_line = self._line(func.end_lineno)
            end = _char_offset(end_line, func.end_col_offset)
            name_range = Range(
                Position(func.end_lineno - 1, end - len(func.attr)),
                Position(func.end_lineno - 1, end),
            )
            return CallReference(
                name=func.attr,
                name_range=name_range,
                receiver=_dotted_name(func.value),
                is_attribute=True,
            )

        return None


# ============================================================
# PROJECT CALL GRAPH
# ============================================================

class ProjectCallGraph:
    """
    Call graph of all Python files under a root directory.

    Usage:
        graph = ProjectCallGraph(Path("my_project"))
        graph.build()
        calls = graph.outgoing_calls(graph.find_function("app/main.py", "main"))
    """

    IGNORED_DIRS = {
        "__pycache__", "node_modules", "venv", "env", "build", "dist", "site-packages"
    }

    def __init__(self, root: Path, self_tokens: Iterable[str] = ("self", "cls")):
        self.root = Path(root).resolve()
        self.self_tokens = set(self_tokens)
        self.modules: Dict[str, ModuleInfo] = {}
        self.modules_by_name: Dict[str, ModuleInfo] = {}
        self.definitions: Dict[str, Definition] = {}
        self.errors: List[str] = []
        self._built = False

    # --- building ---

    def build(self) -> "ProjectCallGraph":
        if self._built:
            return self

        logger.info(f"📂 Indexing Python files under: {self.root}")
        for file_path in sorted(self.root.rglob("*.py")):
            parts = file_path.relative_to(self.root).parts[:-1]
            if any(p.startswith(".") or p in self.IGNORED_DIRS for p in parts):
                continue
            self.add_file(file_path)

        self._built = True
        logger.info(f"✓ Indexed {len(self.modules)} modules, {len(self.definitions)} definitions")
        return self

    def add_file(self, file_path: Path, code: Optional[str] = None) -> Optional[ModuleInfo]:
        """Parse one file and merge its definitions into the graph."""
        file_path = Path(file_path).resolve()
        try:
            if code is None:
                code = file_path.read_text(encoding="utf-8", errors="replace")
            tree = ast.parse(code)
        except (OSError, SyntaxError, ValueError) as e:
            error_msg = f"Failed to parse {file_path.name}: {e}"
            logger.warning(f"⚠️ {error_msg}")
            self.errors.append(error_msg)
            return None

        module = ModuleInfo(
            path=str(file_path),
            module_name=self._module_name(file_path),
            is_package=file_path.name == "__init__.py",
        )
        DefinitionCollector(module, code.split("\n"), self.self_tokens).visit(tree)

        self.modules[module.path] = module
        self.modules_by_name[module.module_name] = module
        for definition in module.definitions:
            self.definitions[definition.item.identity()] = definition
        return module

    def _module_name(self, file_path: Path) -> str:
        try:
            relative = file_path.relative_to(self.root)
        except ValueError:
            return file_path.stem
        parts = list(relative.with_suffix("").parts)
        if parts and parts[-1] == "__init__":
            parts = parts[:-1]
        return ".".join(parts)

    # --- queries ---

    def module_at(self, path: str) -> Optional[ModuleInfo]:
        self.build()
        return self.modules.get(str(Path(path).resolve()))

    def definition_of(self, item: CallHierarchyItem) -> Optional[Definition]:
        self.build()
        return self.definitions.get(item.identity())

    def definition_at(self, path: str, position: Position) -> Optional[Definition]:
        """Innermost definition whose body spans `position`."""
        module = self.module_at(path)
        if module is None:
            return None

        candidates = [
            d for d in module.definitions
            if d.item.range.start.line <= position.line <= d.item.range.end.line
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda d: d.item.range.start)

    def find_function(self, path: str, qualified_name: str) -> Optional[Definition]:
        module = self.module_at(path)
        if module is None:
            return None
        for definition in module.definitions:
            if definition.item.detail == qualified_name:
                return definition
        for definition in module.definitions:
            if definition.item.name == qualified_name:
                return definition
        return None

    def entry_points(self) -> List[Definition]:
        """Public definitions that make at least one call, most calls first."""
        self.build()
        candidates = [
            d for d in self.definitions.values()
            if d.calls and not d.item.name.startswith("_")
        ]
        return sorted(candidates, key=lambda d: (-len(d.calls), d.item.uri, d.item.detail))

    def outgoing_calls(self, item: CallHierarchyItem) -> List[OutgoingCall]:
        """Resolved calls of `item`, grouped by callee."""
        definition = self.definition_of(item)
        if definition is None:
            return []

        grouped: Dict[str, OutgoingCall] = {}
        for reference in definition.calls:
            target = self.resolve(definition, reference)
            if target is None:
                continue
            key = target.identity()
            if key not in grouped:
                grouped[key] = OutgoingCall(to=target, from_ranges=[])
            grouped[key].from_ranges.append(reference.name_range)

        return list(grouped.values())

    # --- resolution ---

    def resolve(self, definition: Definition, reference: CallReference) -> Optional[CallHierarchyItem]:
        module = definition.module
        name = reference.name

        if not reference.is_attribute:
            local = self._local_function(definition, name)
            if local is not None:
                return local.item
            if name in module.functions:
                return module.functions[name].item
            if name in module.classes:
                return module.classes[name].item
            imported = self._resolve_dotted(module.imports.get(name, ""))
            if imported is not None:
                return imported
            return self._unique_global(name)

        receiver = reference.receiver
        own_class = module.classes.get(definition.class_name) if definition.class_name else None

        if receiver in self.self_tokens and own_class is not None:
            method = self._find_method(own_class, name)
            if method is not None:
                return method.item

        owner, _, attribute = (receiver or "").partition(".")
        if own_class is not None and owner in self.self_tokens and attribute and "." not in attribute:
            type_name = own_class.attribute_types.get(attribute)
            class_info = self._class_by_name(module, type_name) if type_name else None
            method = self._find_method(class_info, name) if class_info else None
            if method is not None:
                return method.item

        if receiver and receiver in definition.local_types:
            class_info = self._class_by_name(module, definition.local_types[receiver])
            method = self._find_method(class_info, name) if class_info else None
            if method is not None:
                return method.item

        if receiver:
            class_info = self._class_by_name(module, receiver, allow_unique=False)
            if class_info is not None:
                method = self._find_method(class_info, name)
                if method is not None:
                    return method.item

            target_module = self._module_for_alias(module, receiver)
            if target_module is not None:
                if name in target_module.functions:
                    return target_module.functions[name].item
                if name in target_module.classes:
                    return target_module.classes[name].item

        return self._unique_method(name)

    def _local_function(self, definition: Definition, name: str) -> Optional[Definition]:
        """Function defined inside `definition` itself."""
        qualified_name = f"{definition.item.detail}.{name}"
        for candidate in definition.module.definitions:
            if candidate.item.detail == qualified_name and candidate.class_name is None:
                return candidate
        return None

    def _find_method(self, class_info: ClassInfo, name: str, seen: Optional[Set[str]] = None) -> Optional[Definition]:
        seen = seen if seen is not None else set()
        if class_info.item.identity() in seen:
            return None
        seen.add(class_info.item.identity())

        if name in class_info.methods:
            return class_info.methods[name]

        module = self.modules.get(class_info.item.uri)
        for base in class_info.bases:
            base_info = self._class_by_name(module, base) if module else None
            if base_info is not None:
                found = self._find_method(base_info, name, seen)
                if found is not None:
                    return found
        return None

    def _class_by_name(self, module: ModuleInfo, name: str, allow_unique: bool = True) -> Optional[ClassInfo]:
        if name in module.classes:
            return module.classes[name]

        head, _, rest = name.partition(".")
        if head in module.imports:
            dotted = module.imports[head] + (f".{rest}" if rest else "")
            class_info = self._class_by_dotted(dotted)
            if class_info is not None:
                return class_info

        if not allow_unique:
            return None

        short_name = name.split(".")[-1]
        matches = [
            m.classes[short_name] for m in self.modules.values() if short_name in m.classes
        ]
        return matches[0] if len(matches) == 1 else None

    def _class_by_dotted(self, dotted: str) -> Optional[ClassInfo]:
        module_name, _, class_name = dotted.rpartition(".")
        module = self.modules_by_name.get(module_name)
        if module is not None:
            return module.classes.get(class_name)
        return None

    def _module_for_alias(self, module: ModuleInfo, alias: str) -> Optional[ModuleInfo]:
        head, _, rest = alias.partition(".")
        if head not in module.imports:
            return None
        dotted = module.imports[head] + (f".{rest}" if rest else "")
        return self.modules_by_name.get(dotted)

    def _resolve_dotted(self, dotted: str) -> Optional[CallHierarchyItem]:
        if not dotted:
            return None
        module_name, _, name = dotted.rpartition(".")
        module = self.modules_by_name.get(module_name)
        if module is None:
            return None
        if name in module.functions:
            return module.functions[name].item
        if name in module.classes:
            return module.classes[name].item
        return None

    def _unique_global(self, name: str) -> Optional[CallHierarchyItem]:
        matches = [m.functions[name].item for m in self.modules.values() if name in m.functions]
        return matches[0] if len(matches) == 1 else None

    def _unique_method(self, name: str) -> Optional[CallHierarchyItem]:
        matches = [
            class_info.methods[name].item
            for module in self.modules.values()
            for class_info in module.classes.values()
            if name in class_info.methods
        ]
        return matches[0] if len(matches) == 1 else None
