from setuptools import setup, find_packages

setup(
    name='kubeforge',
    version='1.0.0',
    packages=find_packages(),
    include_package_data=True,
    package_data={
        'kubeforge.modules': ['templates/*.j2'],
    },
    install_requires=[
        'typer',
        'kubernetes',
        'python-dotenv',
        'requests',
        'urllib3',
        'pyyaml',
        'pydantic>=2',
        'jinja2',
        'jsonschema'
    ],
    extras_require={
        'test': [
            'pytest'
        ]
    },
    entry_points={
        'console_scripts': [
            'kubeforge=kubeforge.cli:app'
        ]
    },
    description='Interactive kubeadm bootstrapper: host preparation, containerd, cluster init/join and pod networking',
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: POSIX :: Linux',
    ],
    python_requires='>=3.8',
)
