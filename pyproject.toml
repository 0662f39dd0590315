[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "volscene"
version = "0.1.0"
description = "Scene model for a software 3D renderer: meshes, MD2/COB loading, terrain, lights, materials, cameras and a game world"
requires-python = ">=3.10"
dependencies = [
    "numpy",
    "pillow",
]
keywords = ["3d", "rendering", "md2", "cob", "terrain", "camera", "mesh", "software-renderer"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Multimedia :: Graphics :: 3D Rendering",
    "Topic :: Games/Entertainment",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["volscene"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
