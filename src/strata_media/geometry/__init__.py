"""Geometry: shapes, objects, scenes and point location."""

from strata_media.geometry.overlap import box_overlap
from strata_media.geometry.scene import GeometricObject, Scene
from strata_media.geometry.shapes import Block, Cylinder, Shape, Sphere
from strata_media.geometry.tree import ObjectTree, TreeHit

__all__ = [
    "Shape",
    "Sphere",
    "Block",
    "Cylinder",
    "GeometricObject",
    "Scene",
    "ObjectTree",
    "TreeHit",
    "box_overlap",
]
