# watchfs/__init__.py

"""
watchfs - run a command once a watched directory has gone quiet
"""
__version__ = "0.1.0"
