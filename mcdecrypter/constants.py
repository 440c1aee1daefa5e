'''
Part of mcdecrypter

Layout constants of MaxtoCode protected .NET assemblies and of the CLI metadata tables.
'''

# flake8: noqa

# Mapped PE header snapshot
PE_HEADER_SIZE = 0x1000
PE_HEADER_XOR_KEY = 0x7ABF931
RVA_DISPL_OFFSET = 0x0FB4
MC_HEADER_RVA_OFFSET = 0x0FFC
METHOD_INFOS_RVA_OFFSET = 0x0FF8
ENCRYPTED_DATA_RVA_OFFSET = 0x0FF0

# Older packer versions store 0x48 at this RVA and do not displace RVAs
VERSION_MARKER_RVA = 0x2008
VERSION_MARKER_OLD = 0x48
RECORD_RVA_DISPL = 0x1000

# Packer header (McHeader)
MC_HEADER_SIZE = 0x2000
METHOD_INFOS_XOR_KEY_OFFSET = 0x005A
ENCRYPTED_DATA_XOR_KEY_OFFSET = 0x0046
SIX_SLOTS_MAGIC_OFFSET = 0x08C0
SIX_SLOTS_MAGIC = (0x6A731B13, 0xD72B891F)

# Method info records
METHOD_INFO_HEADER_SIZE = 0xC
ENCRYPTED_DATA_INFO_SIZE = 0x13
METHOD_INFOS_FIRST_RECORD = 8
NUM_DATA_INFOS_DEFAULT = 3
NUM_DATA_INFOS_EXTENDED = 6

# Slot 0 holds the method header, slot 1 the exception handlers (or padding), the rest the instructions
HEADER_SLOT = 0
EXCEPTIONS_SLOT = 1

# Ciphers
CIPHER2_KEY_OFFSET = 0x00FA
CIPHER3_KEY_OFFSET = 0x015E
CIPHER3_SHIFTS = (5, 11, 14, 21, 6, 20, 17, 29, 4, 10, 3, 2, 7, 1, 26, 18)

# Method bodies
PACKED_METHOD_MAGIC = 0xFFF3
METHODDEF_TOKEN_BASE = 0x06000001
TINY_FORMAT = 0x2
FORMAT_MASK = 0x3
TINY_MAX_STACK = 8
TINY_MAX_CODE_SIZE = 0x40
FAT_FORMAT = 0x3
FAT_HEADER_SIZE = 12
MORE_SECTS = 0x8

METADATA_SIGNATURE = 0x424A5342

# MethodDef columns in row order
METHODDEF_FIELDS = ('RVA', 'ImplFlags', 'Flags', 'Name', 'Signature', 'ParamList')
METHODDEF_FIELD_RVA = 0
METHODDEF_FIELD_IMPL_FLAGS = 1
METHODDEF_FIELD_FLAGS = 2
METHODDEF_FIELD_NAME = 3
METHODDEF_FIELD_SIGNATURE = 4
METHODDEF_FIELD_PARAM_LIST = 5

TABLE_ROW_VARIABLE_LENGTH_FIELDS = {
    'TypeDefOrRef':         ['TypeDef', 'TypeRef', 'TypeSpec'],
    'HasConstant':          ['Field', 'Param', 'Property'],
    'HasCustomAttribute':   ['MethodDef', 'Field', 'TypeRef', 'TypeDef', 'Param', 'InterfaceImpl', 'MemberRef',
                             'Module', 'Permission', 'Property', 'Event', 'StandAloneSig', 'ModuleRef', 'TypeSpec',
                             'Assembly', 'AssemblyRef', 'File', 'ExportedType', 'ManifestResource', 'GenericParam',
                             'GenericParamConstraint', 'MethodSpec'],
    'HasFieldMarshal':      ['Field', 'Param'],
    'HasDeclSecurity':      ['TypeDef', 'MethodDef', 'Assembly'],
    'MemberRefParent':      ['TypeDef', 'TypeRef', 'ModuleRef', 'MethodDef', 'TypeSpec'],
    'HasSemantics':         ['Event', 'Property'],
    'MethodDefOrRef':       ['MethodDef', 'MemberRef'],
    'MemberForwarded':      ['Field', 'MethodDef'],
    'Implementation':       ['File', 'AssemblyRef', 'ExportedType'],
    'CustomAttributeType':  ['MethodDef', 'MethodDef', 'MethodDef', 'MemberRef', 'MethodDef'],
    'ResolutionScope':      ['Module', 'ModuleRef', 'AssemblyRef', 'TypeRef'],
    'TypeOrMethodDef':      ['TypeDef', 'MethodDef']
}

METADATA_TABLE_INDEXES = {
    0:  'Module',
    1:  'TypeRef',
    2:  'TypeDef',
    3:  'FieldPtr',
    4:  'Field',
    5:  'MethodPtr',
    6:  'MethodDef',
    7:  'ParamPtr',
    8:  'Param',
    9:  'InterfaceImpl',
    10: 'MemberRef',
    11: 'Constant',
    12: 'CustomAttribute',
    13: 'FieldMarshal',
    14: 'DeclSecurity',
    15: 'ClassLayout',
    16: 'FieldLayout',
    17: 'StandAloneSig',
    18: 'EventMap',
    19: 'EventPtr',
    20: 'Event',
    21: 'PropertyMap',
    22: 'PropertyPtr',
    23: 'Property',
    24: 'MethodSemantics',
    25: 'MethodImpl',
    26: 'ModuleRef',
    27: 'TypeSpec',
    28: 'ImplMap',
    29: 'FieldRVA',
    30: 'EncLog',
    31: 'EncMap',
    32: 'Assembly',
    33: 'AssemblyProcessor',
    34: 'AssemblyOS',
    35: 'AssemblyRef',
    36: 'AssemblyRefProcessor',
    37: 'AssemblyRefOS',
    38: 'File',
    39: 'ExportedType',
    40: 'ManifestResource',
    41: 'NestedClass',
    42: 'GenericParam',
    43: 'MethodSpec',
    44: 'GenericParamConstraint',
    48: 'Document',
    49: 'MethodDebugInformation',
    50: 'LocalScope',
    51: 'LocalVariable',
    52: 'LocalConstant',
    53: 'ImportScope',
    54: 'StateMachineMethod',
    55: 'CustomDebugInformation'
}

# Column schemas of the tables stored in front of MethodDef. A column is either a fixed size in
# bytes, a heap name ('#Strings', '#GUID', '#Blob'), a table name (simple index) or a coded index name.
METADATA_TABLE_SCHEMAS = {
    'Module':       [2, '#Strings', '#GUID', '#GUID', '#GUID'],
    'TypeRef':      ['ResolutionScope', '#Strings', '#Strings'],
    'TypeDef':      [4, '#Strings', '#Strings', 'TypeDefOrRef', 'Field', 'MethodDef'],
    'FieldPtr':     ['Field'],
    'Field':        [2, '#Strings', '#Blob'],
    'MethodPtr':    ['MethodDef'],
    'MethodDef':    [4, 2, 2, '#Strings', '#Blob', 'Param'],
}

HEAP_SIZE_FLAGS = {
    '#Strings': 0x01,
    '#GUID':    0x02,
    '#Blob':    0x04
}
TABLE_EXTRA_DATA_FLAG = 0x40
