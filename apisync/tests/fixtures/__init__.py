"""Test fixtures for apisync tests.

Sample documents as plain dicts, the shape ``load_document`` accepts.
"""

# Minimal document with no paths
MINIMAL_SPEC = {
    'openapi': '3.2.0',
    'info': {'title': 'Minimal API', 'version': '1.0.0'},
    'paths': {},
}

USER_SCHEMA = {
    'type': 'object',
    'description': 'A registered user.',
    'required': ['id', 'name'],
    'properties': {
        'id': {'type': 'integer', 'format': 'int64'},
        'name': {'type': 'string', 'minLength': 1},
        'email': {'type': 'string'},
        'tags': {'type': 'array', 'items': {'type': 'string'}},
    },
}

# Petstore-like document with models, parameters, bodies and security
PETSTORE_SPEC = {
    'openapi': '3.2.0',
    'info': {
        'title': 'Petstore',
        'version': '1.0.0',
        'description': 'A sample pet store.',
    },
    'servers': [{'url': 'https://petstore.example.com/v1'}],
    'tags': [{'name': 'pets', 'description': 'Everything about pets'}],
    'security': [{'apiKey': []}],
    'paths': {
        '/pets': {
            'get': {
                'operationId': 'listPets',
                'summary': 'List all pets',
                'tags': ['pets'],
                'parameters': [
                    {
                        'name': 'limit',
                        'in': 'query',
                        'required': False,
                        'description': 'How many items to return',
                        'schema': {'type': 'integer', 'format': 'int32'},
                    },
                    {
                        'name': 'X-Request-ID',
                        'in': 'header',
                        'required': False,
                        'schema': {'type': 'string'},
                    },
                ],
                'responses': {
                    '200': {
                        'description': 'A list of pets',
                        'content': {
                            'application/json': {
                                'schema': {
                                    'type': 'array',
                                    'items': {'$ref': '#/components/schemas/Pet'},
                                }
                            }
                        },
                    },
                },
            },
            'post': {
                'operationId': 'createPet',
                'tags': ['pets'],
                'requestBody': {
                    'description': 'The pet to add',
                    'required': True,
                    'content': {
                        'application/json': {
                            'schema': {'$ref': '#/components/schemas/NewPet'}
                        }
                    },
                },
                'responses': {
                    '201': {
                        'description': 'Created',
                        'content': {
                            'application/json': {
                                'schema': {'$ref': '#/components/schemas/Pet'}
                            }
                        },
                    },
                },
            },
        },
        '/pets/{petId}': {
            'parameters': [
                {
                    'name': 'petId',
                    'in': 'path',
                    'required': True,
                    'schema': {'type': 'string'},
                }
            ],
            'get': {
                'operationId': 'showPetById',
                'tags': ['pets'],
                'responses': {
                    '200': {
                        'description': 'The pet',
                        'content': {
                            'application/json': {
                                'schema': {'$ref': '#/components/schemas/Pet'}
                            }
                        },
                    },
                },
            },
            'delete': {
                'operationId': 'deletePet',
                'deprecated': True,
                'responses': {'204': {'description': 'Deleted'}},
            },
        },
    },
    'components': {
        'schemas': {
            'Pet': {
                'type': 'object',
                'required': ['id', 'name'],
                'properties': {
                    'id': {'type': 'integer', 'format': 'int64'},
                    'name': {'type': 'string'},
                    'tag': {'type': 'string'},
                },
            },
            'NewPet': {
                'type': 'object',
                'required': ['name'],
                'properties': {
                    'name': {'type': 'string'},
                    'tag': {'type': 'string'},
                },
            },
            'Status': {'type': 'string', 'enum': ['available', 'pending', 'sold']},
        },
        'securitySchemes': {
            'apiKey': {'type': 'apiKey', 'name': 'X-API-Key', 'in': 'header'},
            'petstore_auth': {
                'type': 'oauth2',
                'flows': {
                    'authorizationCode': {
                        'authorizationUrl': 'https://auth.example.com/authorize',
                        'tokenUrl': 'https://auth.example.com/token',
                        'scopes': {'read:pets': 'read your pets'},
                    }
                },
            },
        },
    },
}

# Document whose path item is a component reference
PATH_ITEM_REF_SPEC = {
    'openapi': '3.2.0',
    'info': {'title': 'Refs', 'version': '1.0.0'},
    'paths': {
        '/health': {'$ref': '#/components/pathItems/Health'},
    },
    'components': {
        'pathItems': {
            'Health': {
                'get': {
                    'operationId': 'getHealth',
                    'responses': {'200': {'description': 'OK'}},
                }
            }
        }
    },
}
