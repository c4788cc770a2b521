from setuptools import setup

setup(
    name="chunked-terrain",
    version="1.0",
    description="Procedural chunked terrain with quadtree level of detail",
    python_requires=">=3.8",
    py_modules=[
        "config",
        "noise_field",
        "quadtree",
        "terrain",
        "chunk_renderer",
        "logging_setup",
        "panel",
        "viewer",
    ],
    install_requires=[
        "numpy",
        "opensimplex>=0.4",
        "PyOpenGL",
        "pygame",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": ["terrain-viewer=viewer:main"],
    },
)
