"""TableCopy command line tools"""
