"""
Helper utilities shared by services and routers.

- dates: timezone-aware "now" and normalisation of stored timestamps
- pagination: page slicing and page-number windows for list views
"""
