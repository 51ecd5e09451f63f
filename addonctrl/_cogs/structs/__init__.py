"""
All the structures and pure functions over the raw API bodies.

All the functions are purely data-manipulative and computational.
No external calls or any i/o activities are done here.
"""
