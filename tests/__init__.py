"""
sasakit test suite.

Tests are organized by module:
- test_models: Value objects (areas, uids, records)
- test_classifier: Classifier handle
- test_structure: Structure handle and builder
- test_calculation: Parameters and the calculation engine
- test_result: Result handle and structure consistency checks
- test_selection: Named selections
- test_tree: Result trees, joining and comparison
- test_export: Tree export formats
- test_cli: Command-line interface
"""
