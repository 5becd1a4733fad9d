from setuptools import setup, find_packages

setup(
    name='motive_sdk_python',
    version='0.1.0',
    description='Rigid body streaming client for OptiTrack Motive',
    packages=find_packages(include=['motive_sdk_python', 'motive_sdk_python.*']),
    python_requires='>=3.8',
    install_requires=[
        'numpy',
        'loop-rate-limiters',
    ],
    extras_require={
        'test': ['pytest'],
    },
)
