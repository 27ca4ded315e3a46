"""
Setup script for korg-midi-volume.
`pip install .` installs the korg-midi-volume console script;
`python setup.py py2app` additionally builds a standalone bundle.
"""
import sys

from setuptools import setup, find_packages

APP = ['korg_volume/app.py']
DATA_FILES = [('', ['config.toml.example'])]

# Optimized py2app options for better performance and smaller bundle size
OPTIONS = {
    'argv_emulation': False,
    'packages': ['mido', 'rtmidi', 'tkinter', 'pulsectl', 'korg_volume'],
    'excludes': [
        # Scientific computing libraries
        'matplotlib', 'numpy', 'scipy', 'pandas', 'sympy',
        # Image processing libraries
        'PIL', 'Pillow',
        # Testing frameworks
        'test', 'tests', 'unittest', 'pytest',
        # Development tools
        'black', 'mypy', 'flake8', 'pylint',
    ],
    'plist': {
        'CFBundleName': 'nanoKONTROL2 Volume',
        'CFBundleDisplayName': 'nanoKONTROL2 Volume Controller',
        'CFBundleIdentifier': 'io.github.korg-midi-volume',
        'CFBundleVersion': '1.1.0',
        'CFBundleShortVersionString': '1.1.0',
        'LSUIElement': False,  # Show in dock
    },
    'optimize': 2,
    'dist_dir': 'dist',
}

# Bundle-only arguments; a plain install must not pull in py2app
bundle_kwargs = {}
if 'py2app' in sys.argv:
    bundle_kwargs = {
        'app': APP,
        'data_files': DATA_FILES,
        'options': {'py2app': OPTIONS},
        'setup_requires': ['py2app>=0.13'],
    }

setup(
    name='korg-midi-volume',
    version='1.1.0',
    description='Control PipeWire/PulseAudio volumes with a KORG nanoKONTROL2',
    author='korg-midi-volume contributors',
    author_email='',
    url='',
    packages=find_packages(exclude=['tests', 'tests.*']),
    install_requires=[
        'mido>=1.2.10,<2.0.0',
        'python-rtmidi>=1.4.9,<2.0.0',
        'pulsectl>=23.5.2',
    ],
    extras_require={
        'test': ['pytest>=7.0'],
    },
    entry_points={
        'console_scripts': [
            'korg-midi-volume=korg_volume.app:main',
        ],
    },
    python_requires='>=3.11',
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: End Users/Desktop',
        'License :: OSI Approved :: MIT License',
        'Operating System :: POSIX :: Linux',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Multimedia :: Sound/Audio',
        'Topic :: Multimedia :: Sound/Audio :: MIDI',
    ],
    **bundle_kwargs,
)
