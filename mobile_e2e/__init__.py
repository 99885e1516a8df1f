"""
Mobile E2E Harness - Screen-state reconciliation for iOS UI tests
"""
