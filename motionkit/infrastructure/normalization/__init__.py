"""Response normalization for the Motion API's mixed list payload shapes.
Bounded Context: Response Normalization
"""
