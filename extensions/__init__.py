"""TableCopy extensions"""
