# ===============================================================================
# PYTEST CONFIGURATION
# ===============================================================================
"""
Test Structure:
- tests/ mirrors the apps (tests/billing/, tests/customers/, tests/meals/)
- Naming convention: test_{app}_{feature}.py
- Settings come from config.test_settings (see pyproject.toml)
"""
