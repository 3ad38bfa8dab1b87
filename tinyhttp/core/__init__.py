"""
tinyhttp protocol core: connections, message codecs and redirect handling
"""
