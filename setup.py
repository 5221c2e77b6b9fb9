from setuptools import setup, find_packages

package_name = 'robopuppy'

setup(
    name=package_name,
    version='1.0.0',
    packages=find_packages(include=['robopuppy_gateway', 'robopuppy_client']),
    python_requires='>=3.10',
    install_requires=[
        'setuptools',
        'fastapi>=0.104.0',
        'pydantic>=2.0',
        'uvicorn>=0.24.0',
        'websockets>=12.0',
        'pyserial>=3.5',
    ],
    extras_require={
        'test': [
            'pytest>=7.0',
            'pytest-asyncio>=0.21',
            'httpx>=0.25',
        ],
    },
    zip_safe=True,
    description='Serial controller and web gateway for the RoboPuppy quadruped',
    license='MIT',
    tests_require=['pytest'],
    entry_points={
        'console_scripts': [
            'robopuppy-gateway = robopuppy_gateway.main:main',
            'robopuppy-troubleshoot = robopuppy_gateway.troubleshoot:main',
            'robopuppy-client = robopuppy_client.main:main',
        ],
    },
)
