"""
omniarc.constants - version and naming

(c) 2019--2024 Rob Hagemans
licence: https://opensource.org/licenses/MIT
"""

VERSION = '0.4.0'
PROGRAM_NAME = 'omniarc'
