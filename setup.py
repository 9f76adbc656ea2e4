# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentstack - Diffusion Sampling Engine                             ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝
"""
Latentstack build configuration.

Pure-Python package; the repository root *is* the ``latentstack`` package
and is mapped through ``package_dir``.

Build
-----
    pip install -e .                          # editable install
    pip install -e '.[dev]'                   # with test tooling
    python -m build                           # sdist + wheel
"""
import os

from setuptools import setup

HERE = os.path.dirname(os.path.abspath(__file__))

# ── Package metadata ──
readme = os.path.join(HERE, 'README.md')
if os.path.isfile(readme):
    with open(readme, 'r', encoding='utf-8') as fh:
        long_description = fh.read()
else:
    long_description = ''

setup(
    name='latentstack',
    version='0.1.0',
    author='Pictofeed, LLC',
    author_email='engineering@pictofeed.io',
    description=(
        'Diffusion sampling engine — schedulers, denoising loops and '
        'pipeline dispatch around an external model runtime'
    ),
    long_description=long_description,
    long_description_content_type='text/markdown',
    url='https://github.com/pictofeed/latentstack',
    license='Proprietary',

    package_dir={
        'latentstack': '.',
        'latentstack.diffusion': 'diffusion',
        'latentstack.diffusion.diffusers': 'diffusion/diffusers',
    },
    packages=[
        'latentstack',
        'latentstack.diffusion',
        'latentstack.diffusion.diffusers',
    ],

    python_requires='>=3.10',
    install_requires=[
        'numpy>=1.24',
        'pydantic>=2.0',
        'loguru>=0.7',
        'Pillow>=9.1',
        'tqdm>=4.60',
    ],
    extras_require={
        'dev': [
            'pytest>=7.0',
        ],
    },

    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'Intended Audience :: Science/Research',
        'License :: Other/Proprietary License',
        'Operating System :: OS Independent',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Scientific/Engineering :: Artificial Intelligence',
    ],
    zip_safe=False,
)
