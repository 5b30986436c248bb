"""Smoke tests — verify all xlexport modules import without error."""


def test_modules_import():
    import xlexport.errors
    import xlexport.models
    import xlexport.formats
    import xlexport.records
    import xlexport.schema
    import xlexport.table
    import xlexport.pivot_model
    import xlexport.pivot_cache
    import xlexport.pivot_axes
    import xlexport.pivot
    import xlexport.settings
    import xlexport.exporter
    import xlexport.batch
