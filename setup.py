from setuptools import setup, find_namespace_packages

setup(
    name='azure-datastore',
    version='0.1.0',
    description='Key/value datastore over Azure Blob Storage',
    packages=find_namespace_packages(where='src'),
    package_dir={'': 'src'},
    py_modules=['config'],
    install_requires=[
        'azure-core',
        'azure-storage-blob',
        'azure-identity',
        'aiohttp',
        'aiofiles',
        'pydantic>=2',
        'pydantic-settings',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-asyncio',
            'python-dotenv',
        ],
    },
    python_requires='>=3.8',
)
