"""
Storefront E2E Test Suite

Test categories:
- test_keystrokes.py - Type sequence parsing
- test_models.py - Suite data structures
- test_loader.py - Suite file loading and validation
- test_runner.py - Declarative runner against a mocked page
- test_config_loader.py - Layered YAML settings
- test_stub_store.py - Stub storefront routes
- test_cli.py - Command line entry point
- e2e/ - Browser tests (require playwright)
"""
