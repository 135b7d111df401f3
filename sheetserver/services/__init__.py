# Services package init
"""
SheetServer — Services Layer
==============================

What:  Everything between the routes (HTTP) and the engine / label store.

Service Inventory:
    - selection.py:     raw selection text → Selection (labels resolved)
    - range_count.py:   column/row selection → (start, count), saturating inserts
    - window.py:        request window → cell filter, window clear/preserve rule
    - metadata.py:      column widths / row heights for returned cells
    - batch_loader.py:  range load through single-cell loads, deduplicated
    - operations.py:    one handler per Operation tag
    - dispatcher.py:    (resource, method, relation) dispatch table + pipeline
    - engine_base.py:   SpreadsheetEngine contract
    - memory_engine.py: in-memory engine and per-spreadsheet registry
    - label_store.py:   LabelStore contract and SQL implementation
"""
