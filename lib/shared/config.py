import json;
from typing import Self;
import logging;
import os;
import yaml;


Log = logging.getLogger(__name__);

class Config(object):
    '''
    Plain dictionary of settings. Load one with from_file, which picks JSON or
    YAML from the extension and writes the given default text when the file
    is missing or unreadable.
    '''
    def __init__(self, data = None):
        if data == None:
            self.cfg = {};
        else:
            self.cfg = data;

    @classmethod
    def from_file(cls, path, default : str = None):
        ext = os.path.splitext(path)[1].lower();
        if ext == ".yaml" or ext == ".yml":
            return YamlConfig.from_file(path, default);
        else:
            return JsonConfig.from_file(path, default);

    @classmethod
    def FromString(cls, target : str, format : str = "json") -> Self:
        fmt = format.lower() if format != None else "json";
        if fmt == "yaml" or fmt == "yml":
            return YamlConfig.from_string(target);
        else:
            return JsonConfig.from_string(target);

    def GetValue(self, paramName : str, defaultValue : any):
        if paramName in self.cfg:
            Log.debug(f"Retrieved config value for '{paramName}': {self.cfg[paramName]}")
            return self.cfg[paramName];
        else:
            Log.debug(f"Config parameter '{paramName}' not found, using default value: {defaultValue}")
            return defaultValue;

    @classmethod
    def _Parse(cls, text : str):
        raise NotImplementedError();

    @classmethod
    def from_string(cls, target : str) -> Self:
        if target == None:
            Log.warning("Attempted to create config from None string")
            return None;
        try:
            data = cls._Parse(target);
            if data == None:
                data = {};
            return cls(data);
        except Exception as e:
            Log.error(f"Error creating config from string: {e}")
            return None;

    @classmethod
    def _FromDefault(cls, path, default : str):
        if default == None:
            return None;
        instance = cls.from_string(default);
        with open(path, "wt") as f:
            f.write(default);
        Log.info(f"Default config file created: {path}")
        return instance;

    @classmethod
    def _LoadFile(cls, path, default : str = None):
        try:
            Log.debug(f"Attempting to load config from: {path}")
            with open(path) as file:
                data = cls._Parse(file.read());
            if data == None:
                data = {};
            Log.info(f"Successfully loaded config from: {path}")
            return cls(data);
        except FileNotFoundError:
            Log.warning(f"Config file not found: {path}")
            return cls._FromDefault(path, default);
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            Log.error(f"Invalid config file {path}: {e}")
            return cls._FromDefault(path, default);


class JsonConfig(Config):
    @classmethod
    def from_file(cls, path, default : str = None):
        return cls._LoadFile(path, default);

    @classmethod
    def _Parse(cls, text : str):
        return json.loads(text);


class YamlConfig(Config):
    @classmethod
    def from_file(cls, path, default : str = None):
        return cls._LoadFile(path, default);

    @classmethod
    def _Parse(cls, text : str):
        return yaml.safe_load(text);
