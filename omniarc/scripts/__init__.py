"""
omniarc.scripts - command-line tools

(c) 2019--2024 Rob Hagemans
licence: https://opensource.org/licenses/MIT
"""
