# volscene

The scene layer of a software 3D renderer. It holds the data a renderer
draws and the rules that change that data from frame to frame:

- **Materials** (`volscene.materials`): ARGB colours (`Color.xrgb`,
  `Color.argb`, `Color.from_packed`, `Color.packed`), material attribute
  flags (`MaterialAttr`) and `Material`. Its `compute_reflective_colors()`
  works out the ambient and diffuse reflective colours from the base colour
  and the `k_ambient` / `k_diffuse` factors, clamped to 0..255.
- **Lights** (`volscene.lights`): `LightType` and `Light`. `make_light()`
  returns an active light with the default colour, position, direction and
  attenuation for its type.
- **Cameras** (`volscene.camera`): `Camera` with Euler (`build_euler`) or UVN
  (`build_uvn`) world-to-camera matrices, perspective and screen matrices,
  and four frustum clip planes (`Plane`). Matrices follow the row-vector
  convention (`v @ M`). `update()` wraps the direction angles into [0, 360).
- **Meshes** (`volscene.mesh`): multi-frame vertex and polygon lists,
  bounding radii, polygon and vertex normals, model-to-world transforms,
  bounding-sphere frustum culling (`Mesh.cull`) and MD2 keyframe animation
  (`Mesh.play_animation`, `Mesh.update_animation_and_transform`, with
  `AnimationId` and `InterpMode`).
- **Loaders**:
  - `volscene.md2.load_md2` reads Quake II MD2 models into a multi-frame
    mesh; `parse_header` reads and checks the header alone.
  - `volscene.cob.load_cob` reads trueSpace ASCII COB objects into a
    single-frame mesh, with `COBFlags` for swapping Y/Z, swapping or
    inverting texture coordinates and overriding the shade mode.
  - `volscene.terrain.generate_terrain` builds a terrain mesh from the red
    channel of a height-map image; `generate_terrain_from_heights` does the
    same from a 2-D array of 0..255 samples.
- **World** (`volscene.world`): `World` owns the entities, lights, materials,
  camera, terrain and the current `GameState`, switches states on request
  (`change_state`, applied on the next `update`) and advances the background
  movement angle in `fixed_update`.

## Installing

```
pip install volscene
```

Python 3.10 or newer. The package uses numpy and Pillow.

## Example

```python
from volscene.world import World, GameState, Entity
from volscene.lights import LightType


class Demo(GameState):
    def start_up(self, world):
        super().start_up(world)
        self.sun = world.spawn_light(LightType.INFINITE)
        self.hero = world.spawn_entity(Entity)

    def update(self, delta_time):
        super().update(delta_time)
        self.sun.position[0] += 0.1 * delta_time


world = World(screen_width=800, screen_height=600)
world.start_up(Demo())
world.update(16.0)        # delta times are in milliseconds
world.fixed_update(16.0)
world.shut_down()
```

Loading a model and building a terrain without a world:

```python
from volscene.md2 import load_md2
from volscene.mesh import AnimationId, ShadeMode
from volscene.terrain import generate_terrain_from_heights

mesh = load_md2("models/marine/tris.md2", skin_path="models/marine/skin.pcx")
mesh.play_animation(AnimationId.RUN, True)
mesh.update_animation_and_transform(16.0)

heights = [[0, 64], [128, 255]]
terrain = generate_terrain_from_heights(
    heights, "textures/ground.png", 15000.0, 1000.0, ShadeMode.GOURAUD
)
print(terrain.max_radius())
```

Bad input raises: `MD2Error` for a wrong MD2 magic number or version or
data that lies outside the file, `COBError` for a COB file that cannot be
parsed, `ValueError` for invalid sizes or colours, and `OSError` for a file
that cannot be opened.

## What it does not do

This package holds and updates scene data only. It does not rasterise or
display anything, open a window or read keyboard and mouse input. Textures
are not decoded: a material's `texture` records the texture path and the
colour correction as a tuple, for a renderer to load. The world's
background image is the one image it does load, as an RGBA array in
`World.environment_2d`. There is no command-line program.

## Running the tests

```
pip install -e .[test]
pytest
```