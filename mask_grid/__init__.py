"""
Salient-object mask grid package.

Exposes reusable primitives for turning a captured frame into a model-ready
tensor, running the segmentation model, decoding its mask channels into
displayable images, and laying those out on a thumbnail grid.
"""
