"""Test path flattening and grouping."""

from apisync.codegen.paths import (
    build_paths,
    derive_operation_id,
    PathItemResolution,
    flatten_all,
    flatten_paths,
    flatten_webhooks,
    merge_parameters,
)
from apisync.model import (
    Components,
    EndpointDefinition,
    EndpointParameter,
    HttpMethod,
    ParameterLocation,
    PathItem,
    Server,
)
from apisync.openapi.loader import load_document

from .fixtures import PATH_ITEM_REF_SPEC, PETSTORE_SPEC


def _endpoint(operation_id: str, path: str = '/items', **kwargs) -> EndpointDefinition:
    return EndpointDefinition(
        path=path, method=HttpMethod.GET, operation_id=operation_id, **kwargs
    )


def _param(name: str, location=ParameterLocation.QUERY, **kwargs) -> EndpointParameter:
    return EndpointParameter(name=name, location=location, **kwargs)


class TestDeriveOperationId:
    """Test derive_operation_id function."""

    def test_non_alphanumerics_collapse(self):
        """Test separators and braces collapse into single underscores."""
        assert derive_operation_id('GET', '/users/{id}') == 'get_users_id'
        assert derive_operation_id('post', '/a-b/c.d') == 'post_a_b_c_d'


class TestMergeParameters:
    """Test merge_parameters function."""

    def test_operation_overrides_path(self):
        """Test operation entries replace path-level entries with the same key."""
        path_level = [_param('limit', description='path'), _param('id', ParameterLocation.PATH)]
        operation = [_param('limit', description='operation')]
        merged = merge_parameters(path_level, operation)
        assert [p.name for p in merged] == ['limit', 'id']
        assert merged[0].description == 'operation'

    def test_same_name_other_location(self):
        """Test the location is part of the identity."""
        merged = merge_parameters(
            [_param('id', ParameterLocation.PATH)], [_param('id', ParameterLocation.QUERY)]
        )
        assert len(merged) == 2


class TestFlattenPaths:
    """Test flatten_paths function."""

    def test_petstore(self):
        """Test operations are emitted in key order then slot order."""
        definition = load_document(PETSTORE_SPEC)
        endpoints = flatten_paths(definition.paths, definition.components)
        assert [e.operation_id for e in endpoints] == [
            'listPets',
            'createPet',
            'showPetById',
            'deletePet',
        ]

    def test_path_parameters_cascade(self):
        """Test path-level parameters appear on every operation."""
        definition = load_document(PETSTORE_SPEC)
        endpoints = flatten_paths(definition.paths, definition.components)
        by_id = {e.operation_id: e for e in endpoints}
        assert [p.name for p in by_id['showPetById'].parameters] == ['petId']
        assert [p.name for p in by_id['deletePet'].parameters] == ['petId']

    def test_summary_and_servers_cascade(self):
        """Test operation values win and path values fill the gaps."""
        item = PathItem(
            summary='shared',
            servers=[Server(url='https://a.example.com')],
            get=_endpoint('one', summary='own'),
            post=_endpoint('two'),
        )
        endpoints = flatten_paths({'/items': item})
        assert endpoints[0].summary == 'own'
        assert endpoints[1].summary == 'shared'
        assert endpoints[1].servers[0].url == 'https://a.example.com'
        assert endpoints[1].method is HttpMethod.POST

    def test_additional_operations(self):
        """Test custom verbs follow the fixed slots."""
        item = PathItem(
            get=_endpoint('one'),
            additional_operations={'LINK': _endpoint('link')},
        )
        endpoints = flatten_paths({'/items': item})
        assert endpoints[1].method is HttpMethod.CUSTOM
        assert endpoints[1].method_name == 'LINK'

    def test_component_reference(self):
        """Test a path item reference resolves through components."""
        definition = load_document(PATH_ITEM_REF_SPEC)
        endpoints = flatten_paths(definition.paths, definition.components)
        assert [(e.path, e.operation_id) for e in endpoints] == [('/health', 'getHealth')]

    def test_unresolved_reference_skipped(self):
        """Test a dangling reference yields no endpoints."""
        item = PathItem(ref='#/components/pathItems/Missing')
        assert flatten_paths({'/x': item}, Components()) == []

    def test_foreign_base_without_resolver(self):
        """Test a reference into another document is skipped when nothing can load it."""
        components = Components(path_items={'Pets': PathItem(get=_endpoint('listPets'))})
        item = PathItem(ref='https://other.test/openapi.json#/components/pathItems/Pets')
        endpoints = flatten_paths(
            {'/pets': item}, components, self_uri='https://api.test/openapi.json'
        )
        assert endpoints == []

    def test_matching_base_uses_local_components(self):
        components = Components(path_items={'Pets': PathItem(get=_endpoint('listPets'))})
        item = PathItem(ref='https://api.test/openapi.json#/components/pathItems/Pets')
        endpoints = flatten_paths(
            {'/pets': item}, components, self_uri='https://api.test/openapi.json'
        )
        assert [e.operation_id for e in endpoints] == ['listPets']

    def test_external_resolver(self):
        """Test foreign references are handed to the resolver with base and key."""
        calls = []
        target = PathItem(get=_endpoint('listPets'))

        def resolver(base, key):
            calls.append((base, key))
            return PathItemResolution(target)

        item = PathItem(ref='https://other.test/openapi.json#/components/pathItems/Pets')
        endpoints = flatten_paths(
            {'/pets': item},
            Components(),
            ref_resolver=resolver,
            self_uri='https://api.test/openapi.json',
        )
        assert calls == [('https://other.test/openapi.json', 'Pets')]
        assert [(e.path, e.operation_id) for e in endpoints] == [('/pets', 'listPets')]

    def test_relative_reference_resolves_against_self(self):
        calls = []

        def resolver(base, key):
            calls.append((base, key))
            return None

        item = PathItem(ref='shared.json#/components/pathItems/Pets')
        flatten_paths(
            {'/pets': item},
            Components(),
            ref_resolver=resolver,
            self_uri='https://api.test/v1/openapi.json',
        )
        assert calls == [('https://api.test/v1/shared.json', 'Pets')]

    def test_multi_segment_pointer_skipped(self):
        """Test only single-name component pointers are followed."""
        components = Components(path_items={'a': PathItem(get=_endpoint('one'))})
        item = PathItem(ref='#/components/pathItems/a/b')
        assert flatten_paths({'/x': item}, components) == []


class TestFlattenWebhooks:
    """Test flatten_webhooks and flatten_all."""

    def test_webhook_key_is_path(self):
        webhooks = {'newPet': PathItem(post=_endpoint('onNewPet'))}
        endpoints = flatten_webhooks(webhooks)
        assert [(e.path, e.method, e.operation_id) for e in endpoints] == [
            ('newPet', HttpMethod.POST, 'onNewPet')
        ]

    def test_webhook_reference(self):
        components = Components(path_items={'Event': PathItem(post=_endpoint('onEvent'))})
        webhooks = {'event': PathItem(ref='#/components/pathItems/Event')}
        endpoints = flatten_webhooks(webhooks, components)
        assert [(e.path, e.operation_id) for e in endpoints] == [('event', 'onEvent')]

    def test_flatten_all_orders_paths_before_webhooks(self):
        """Test path endpoints come first, then webhook endpoints."""
        paths = {'/pets': PathItem(get=_endpoint('listPets'))}
        webhooks = {'newPet': PathItem(post=_endpoint('onNewPet'))}
        endpoints = flatten_all(paths, webhooks)
        assert [(e.path, e.operation_id) for e in endpoints] == [
            ('/pets', 'listPets'),
            ('newPet', 'onNewPet'),
        ]

    def test_flatten_all_from_document(self):
        definition = load_document(
            {
                'openapi': '3.2.0',
                'info': {'title': 'Hooks', 'version': '1.0.0'},
                'webhooks': {
                    'newPet': {
                        'post': {
                            'operationId': 'onNewPet',
                            'responses': {'200': {'description': 'OK'}},
                        }
                    }
                },
            }
        )
        endpoints = flatten_all(definition.paths, definition.webhooks, definition.components)
        assert [(e.path, e.operation_id) for e in endpoints] == [('newPet', 'onNewPet')]


class TestBuildPaths:
    """Test build_paths function."""

    def test_groups_by_path(self):
        """Test endpoints are grouped in first-seen order."""
        endpoints = [
            _endpoint('a', '/one'),
            _endpoint('b', '/two'),
            EndpointDefinition(path='/one', method=HttpMethod.POST, operation_id='c'),
        ]
        paths = build_paths(endpoints)
        assert list(paths) == ['/one', '/two']
        assert paths['/one'].get.operation_id == 'a'
        assert paths['/one'].post.operation_id == 'c'

    def test_lift_common_metadata(self):
        """Test facets shared by every operation move to the path item."""
        shared = [_param('id', ParameterLocation.PATH)]
        endpoints = [
            _endpoint('a', '/one', summary='same', parameters=shared),
            EndpointDefinition(
                path='/one',
                method=HttpMethod.POST,
                operation_id='b',
                summary='same',
                parameters=shared,
            ),
        ]
        item = build_paths(endpoints, lift_common_path_metadata=True)['/one']
        assert item.summary == 'same'
        assert [p.name for p in item.parameters] == ['id']
        assert item.get.summary is None
        assert item.get.parameters == []

    def test_lift_requires_equality(self):
        """Test differing values stay on the operations."""
        endpoints = [
            _endpoint('a', '/one', summary='x'),
            EndpointDefinition(
                path='/one', method=HttpMethod.POST, operation_id='b', summary='y'
            ),
        ]
        item = build_paths(endpoints, lift_common_path_metadata=True)['/one']
        assert item.summary is None
        assert item.get.summary == 'x'

    def test_flatten_after_build(self):
        """Test flattening a built path map gives the endpoints back."""
        definition = load_document(PETSTORE_SPEC)
        endpoints = flatten_paths(definition.paths, definition.components)
        again = flatten_paths(build_paths(endpoints, lift_common_path_metadata=True))
        assert [e.operation_id for e in again] == [e.operation_id for e in endpoints]
        assert again[2].parameters == endpoints[2].parameters
