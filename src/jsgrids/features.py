"""Closed enumerations of supported frameworks and grid features.

The record schema is generated from these keys, so adding a framework or a
feature only means adding an entry here. Order is kept so serialized records
list their keys the same way on every run.
"""

FRAMEWORKS: tuple[str, ...] = (
    "vanilla",
    "react",
    "vue",
    "angular",
    "jquery",
    "ember",
)

FEATURES: tuple[str, ...] = (
    "accessibility",
    "cellEditing",
    "clipboard",
    "columnGroups",
    "columnReordering",
    "columnResizing",
    "customizable",
    "export",
    "filtering",
    "formulas",
    "frozenColumns",
    "infiniteScrolling",
    "keyboardNavigation",
    "pagination",
    "rowGrouping",
    "rowReordering",
    "rowSelection",
    "sorting",
    "treeData",
    "typescript",
    "virtualization",
)
