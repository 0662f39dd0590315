"""Scene model for a software 3D renderer: materials, lights, cameras, meshes, MD2/COB loaders, terrain and the world."""

__version__ = "0.1.0"
__all__ = ["camera", "cob", "lights", "materials", "md2", "mesh", "terrain", "world"]