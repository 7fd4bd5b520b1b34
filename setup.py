from setuptools import find_packages, setup

setup(
    name='mailslot',
    version='1.0.0',
    description='Bounded multi-instance FIFO mailslots with blocking and non-blocking access',
    author='isantolin',
    author_email='',
    packages=find_packages(include=['mailslot', 'mailslot.*']),
    python_requires='>=3.12',
    install_requires=[
        'construct',
        'marshmallow>=3.13',
        'msgspec',
        'prometheus-client>=0.20',
        'tenacity',
        'transitions',
        'uvloop',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-asyncio',
        ],
    },
    entry_points={
        'console_scripts': [
            'mailslot=mailslot.cli:main',
        ],
    },
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: POSIX :: Linux',
    ],
)
