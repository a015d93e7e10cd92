"""
omniarc test suite
"""
