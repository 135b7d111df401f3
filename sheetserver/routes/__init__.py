# Routes package init
"""
SheetServer — API Routes Package
==================================

Route Inventory:
    - spreadsheet.py:  GET|POST|DELETE /api/spreadsheet/{id}/{resource}
                       GET|POST|DELETE /api/spreadsheet/{id}/{resource}/{selection}
                       GET|POST|DELETE /api/spreadsheet/{id}/{resource}/{selection}/{relation}
    - health.py:       GET /health

Routes are thin: they build a DispatchRequest, call the dispatcher and render
the result. Every decision about selections, parameters and bodies lives in
services/.
"""
