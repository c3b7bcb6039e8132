"""Mapping layer - model definitions, resources and embedded resources."""

from __future__ import annotations

from doc_query.mapping.builder import ModelBuilder, embedded_model, model
from doc_query.mapping.descriptors import (
    AssociationDescriptor,
    EmbedmentDescriptor,
    ModelMetadata,
    PropertyDescriptor,
)
from doc_query.mapping.embedment import EmbeddedCollection, OneToMany, OneToOne
from doc_query.mapping.resource import EmbeddedResource, Resource

__all__ = [
    "model",
    "embedded_model",
    "ModelBuilder",
    "ModelMetadata",
    "PropertyDescriptor",
    "EmbedmentDescriptor",
    "AssociationDescriptor",
    "Resource",
    "EmbeddedResource",
    "EmbeddedCollection",
    "OneToOne",
    "OneToMany",
]
