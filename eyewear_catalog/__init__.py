"""Category hierarchy resolver for the eyewear catalog backend"""
__version__ = "0.1.0"
